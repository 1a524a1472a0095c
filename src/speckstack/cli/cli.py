import logging
import os

import click

from speckstack.cli.lazy_group import LazyGroup
from speckstack.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags

DEBUG_ENV_VAR = "SPECKSTACK_DEBUG"

LAZY_SUBCOMMANDS = {
    "create": "speckstack.cli.commands.create:create_cmd",
    "list": "speckstack.cli.commands.list_cmd:list_cmd",
    "delete": "speckstack.cli.commands.delete:delete_cmd",
    "import": "speckstack.cli.commands.import_cmd:import_cmd",
    "reparent": "speckstack.cli.commands.reparent:reparent_cmd",
    "update": "speckstack.cli.commands.update:update_cmd",
    "status": "speckstack.cli.commands.status:status_cmd",
    "worktree": "speckstack.cli.commands.worktree:worktree_group",
    "link": "speckstack.cli.commands.link:link_cmd",
    "config": "speckstack.cli.commands.config:config_group",
}


def debug_requested(flag: bool) -> bool:
    value = os.environ.get(DEBUG_ENV_VAR, "")
    return flag or value.lower() not in ("", "0", "false", "no")


def configure_logging(debug: bool) -> None:
    """Send log records to stderr: everything with --debug, warnings otherwise."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")


@click.group(
    cls=LazyGroup,
    lazy_subcommands=LAZY_SUBCOMMANDS,
    context_settings=CONTEXT_SETTINGS,
)
@click.version_option(package_name="speckstack")
@click.option("--debug", is_flag=True, help=f"Verbose logging (also via {DEBUG_ENV_VAR}=1)")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Track stacked branches for spec-driven development."""
    configure_logging(debug_requested(debug))
    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = create_context()


def main() -> None:
    """CLI entry point used by the `speckstack` console script."""
    cli()
