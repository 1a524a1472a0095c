from pathlib import Path

import click

from speckstack.cli.core import load_services
from speckstack.cli.error_boundary import stack_error_boundary
from speckstack.cli.output import machine_output, user_output
from speckstack.core.context import StackContext


@click.command("create")
@click.argument("name", metavar="NAME")
@click.option("--base", "base", help="Branch to stack on (default: the repository default branch)")
@click.option("--spec", "spec_id", help="Feature specification id, e.g. 007-auth-flow")
@click.option("--worktree", is_flag=True, help="Also create an isolated worktree")
@click.option(
    "--worktree-path",
    type=click.Path(path_type=Path, file_okay=False),
    help="Worktree location (implies --worktree)",
)
@click.pass_obj
@stack_error_boundary
def create_cmd(
    ctx: StackContext,
    name: str,
    base: str | None,
    spec_id: str | None,
    worktree: bool,
    worktree_path: Path | None,
) -> None:
    """Create and track a branch stacked on BASE."""
    services = load_services(ctx)
    if worktree_path is not None and not worktree_path.is_absolute():
        worktree_path = ctx.cwd / worktree_path
    branch = services.manager.create_branch(
        name,
        base,
        spec_id,
        worktree=worktree,
        worktree_path=worktree_path,
    )

    user_output(
        f"Created {click.style(branch.name, fg='cyan', bold=True)} "
        f"on {click.style(branch.base_branch, fg='yellow')}"
    )
    if branch.worktree_path is not None:
        user_output(f"Worktree: {branch.worktree_path}")
        machine_output(str(branch.worktree_path))
