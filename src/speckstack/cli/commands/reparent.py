import click

from speckstack.cli.core import load_services
from speckstack.cli.error_boundary import stack_error_boundary
from speckstack.cli.output import user_output
from speckstack.core.context import StackContext


@click.command("reparent")
@click.argument("name", metavar="NAME")
@click.argument("new_base", metavar="NEW_BASE")
@click.pass_obj
@stack_error_boundary
def reparent_cmd(ctx: StackContext, name: str, new_base: str) -> None:
    """Stack NAME on NEW_BASE instead of its current base."""
    services = load_services(ctx)
    old_base = services.manager.get_branch(name).base_branch
    branch = services.manager.reparent_branch(name, new_base)
    user_output(
        f"{click.style(branch.name, fg='cyan', bold=True)} now stacks on "
        f"{click.style(branch.base_branch, fg='yellow')}"
    )
    user_output(f"Rebase to match: git rebase --onto {new_base} {old_base} {name}")
