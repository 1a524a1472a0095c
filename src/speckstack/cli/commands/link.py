from pathlib import Path

import click

from speckstack.cli.core import discover_repo
from speckstack.cli.error_boundary import stack_error_boundary
from speckstack.cli.output import user_output
from speckstack.core.context import StackContext


@click.command("link")
@click.argument("root_path", metavar="ROOT_PATH", type=click.Path(path_type=Path))
@click.option("--name", "name", help="Reverse link name in the root (default: repo dir name)")
@click.pass_obj
@stack_error_boundary
def link_cmd(ctx: StackContext, root_path: Path, name: str | None) -> None:
    """Link this repository to the shared specification root at ROOT_PATH."""
    discovery, record = discover_repo(ctx)
    if not root_path.is_absolute():
        root_path = ctx.cwd / root_path
    root = discovery.link(record.path, root_path, name)
    user_output(f"Linked {click.style(record.display_name, fg='cyan', bold=True)} to {root}")
