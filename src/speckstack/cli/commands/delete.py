import click

from speckstack.cli.core import load_services
from speckstack.cli.error_boundary import stack_error_boundary
from speckstack.cli.output import user_output
from speckstack.core.context import StackContext


@click.command("delete")
@click.argument("name", metavar="NAME")
@click.option(
    "--cascade",
    is_flag=True,
    help="Reparent child branches onto NAME's base instead of refusing",
)
@click.pass_obj
@stack_error_boundary
def delete_cmd(ctx: StackContext, name: str, cascade: bool) -> None:
    """Stop tracking NAME (the git branch itself is kept)."""
    services = load_services(ctx)
    base = services.manager.get_branch(name).base_branch
    reparented = services.manager.delete_branch(name, cascade=cascade)

    user_output(f"Deleted {click.style(name, fg='cyan', bold=True)}")
    for child in reparented:
        user_output(f"  Reparented {child} onto {base}")
