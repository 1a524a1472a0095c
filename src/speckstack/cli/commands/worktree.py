from pathlib import Path

import click

from speckstack.cli.core import load_services
from speckstack.cli.error_boundary import stack_error_boundary
from speckstack.cli.output import machine_output, user_output
from speckstack.core.context import StackContext


@click.group("worktree")
def worktree_group() -> None:
    """Manage isolated worktrees for tracked branches."""


@worktree_group.command("add")
@click.argument("name", metavar="NAME")
@click.option(
    "--path",
    "path",
    type=click.Path(path_type=Path, file_okay=False),
    help="Worktree location (default: <worktrees_dir>/<NAME>)",
)
@click.pass_obj
@stack_error_boundary
def worktree_add(ctx: StackContext, name: str, path: Path | None) -> None:
    """Create a worktree for tracked branch NAME."""
    services = load_services(ctx)
    if path is not None and not path.is_absolute():
        path = ctx.cwd / path
    created = services.worktrees.provision(name, path)
    user_output(f"Created worktree for {click.style(name, fg='cyan', bold=True)} at {created}")
    machine_output(str(created))


@worktree_group.command("remove")
@click.argument("name", metavar="NAME")
@click.pass_obj
@stack_error_boundary
def worktree_remove(ctx: StackContext, name: str) -> None:
    """Remove the worktree of NAME (no-op if it has none)."""
    services = load_services(ctx)
    removed = services.worktrees.teardown(name)
    if removed is None:
        user_output(f"{name} has no worktree")
        return
    user_output(f"Removed worktree {removed}")
