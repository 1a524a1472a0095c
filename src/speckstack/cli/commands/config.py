import click

from speckstack.cli.core import discover_repo
from speckstack.cli.error_boundary import fail, stack_error_boundary
from speckstack.cli.output import machine_output, user_output
from speckstack.core.context import StackContext
from speckstack.core.repo_config import (
    CONFIG_KEYS,
    RepoConfig,
    config_path_for_repo,
    load_repo_config,
    set_repo_config_value,
)


def _format_value(config: RepoConfig, key: str) -> str | None:
    value = getattr(config, key)
    return None if value is None else str(value)


@click.group("config")
def config_group() -> None:
    """Manage repository configuration (.speck/config.toml)."""


@config_group.command("list")
@click.pass_obj
@stack_error_boundary
def config_list(ctx: StackContext) -> None:
    """Print every configuration key and its effective value."""
    _, record = discover_repo(ctx)
    config = load_repo_config(record.path)
    cfg_path = config_path_for_repo(record.path)
    user_output(click.style(f"Repository configuration ({cfg_path}):", bold=True))
    for key in CONFIG_KEYS:
        value = _format_value(config, key)
        machine_output(f"{key}={value if value is not None else '(auto)'}")


@config_group.command("get")
@click.argument("key", metavar="KEY")
@click.pass_obj
@stack_error_boundary
def config_get(ctx: StackContext, key: str) -> None:
    """Print the value of a given configuration key."""
    if key not in CONFIG_KEYS:
        fail(f"Invalid key: {key}. Valid keys: {', '.join(CONFIG_KEYS)}")
    _, record = discover_repo(ctx)
    value = _format_value(load_repo_config(record.path), key)
    if value is None:
        user_output("not configured (will auto-detect)")
        return
    machine_output(value)


@config_group.command("set")
@click.argument("key", metavar="KEY")
@click.argument("value", metavar="VALUE")
@click.pass_obj
@stack_error_boundary
def config_set(ctx: StackContext, key: str, value: str) -> None:
    """Update configuration with a value for the given key."""
    _, record = discover_repo(ctx)
    set_repo_config_value(record.path, key, value)
    user_output(f"Set {key}={value}")
