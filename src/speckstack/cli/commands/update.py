import click

from speckstack.cli.core import load_services
from speckstack.cli.error_boundary import stack_error_boundary
from speckstack.cli.output import user_output
from speckstack.cli.rendering import format_warnings
from speckstack.core.branch_types import BranchStatus
from speckstack.core.context import StackContext


@click.command("update")
@click.argument("name", metavar="NAME")
@click.option(
    "--status",
    "status",
    required=True,
    type=click.Choice([s.value for s in BranchStatus]),
    help="New lifecycle status",
)
@click.pass_obj
@stack_error_boundary
def update_cmd(ctx: StackContext, name: str, status: str) -> None:
    """Change the lifecycle status of NAME."""
    services = load_services(ctx)
    branch = services.manager.set_status(name, BranchStatus(status))
    user_output(f"{click.style(branch.name, fg='cyan', bold=True)} is {branch.status.value}")

    children = {c.name for c in services.manager.children_of(name)}
    affected = [w for w in services.manager.health_warnings() if w.branch in children]
    for line in format_warnings(affected):
        user_output(click.style(line, fg="yellow"))
