from typing import Any

import click

from speckstack.cli.core import aggregate_service, load_services
from speckstack.cli.error_boundary import fail, stack_error_boundary
from speckstack.cli.json_output import emit_json
from speckstack.cli.output import machine_output, user_output
from speckstack.cli.rendering import (
    branch_to_dict,
    format_branches_as_tree,
    format_stack_chain,
    report_to_dict,
)
from speckstack.core.aggregate_status import RepoFailure
from speckstack.core.context import StackContext


@click.command("list")
@click.option("--stack", "stack_of", metavar="NAME", help="Show NAME and its ancestors")
@click.option("--descendants", "descendants_of", metavar="NAME", help="Show what stacks on NAME")
@click.option("--all", "all_repos", is_flag=True, help="List every repository in the topology")
@click.option(
    "--format",
    "format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.pass_obj
@stack_error_boundary
def list_cmd(
    ctx: StackContext,
    stack_of: str | None,
    descendants_of: str | None,
    all_repos: bool,
    format: str,
) -> None:
    """List tracked branches as stacks."""
    if stack_of is not None and descendants_of is not None:
        fail("--stack and --descendants are mutually exclusive")

    services = load_services(ctx)
    manager = services.manager
    current = services.git.get_current_branch(ctx.cwd)

    if all_repos:
        if stack_of is not None or descendants_of is not None:
            fail("--all cannot be combined with --stack or --descendants")
        report = aggregate_service(ctx, services).aggregate(services.record)
        if format == "json":
            emit_json(report_to_dict(report))
            return
        for entry in report.entries:
            user_output(click.style(entry.display_name, bold=True))
            if isinstance(entry, RepoFailure):
                user_output(click.style(f"  {entry.error_type}: {entry.message}", fg="red"))
                continue
            tree = format_branches_as_tree(list(entry.branches))
            machine_output("\n".join(f"  {line}" for line in tree.splitlines()))
        return

    if stack_of is not None:
        names = manager.list_stack(stack_of)
        branches = [manager.get_branch(n) for n in names]
        if format == "json":
            emit_json({"stack": [branch_to_dict(b) for b in branches]})
            return
        machine_output(format_stack_chain(branches[0].base_branch, branches, current))
        return

    if descendants_of is not None:
        descendants = manager.list_descendants(descendants_of)
        if format == "json":
            emit_json({"descendants": [branch_to_dict(b) for b in descendants]})
            return
        if not descendants:
            user_output(f"Nothing is stacked on {descendants_of}")
            return
        machine_output(format_branches_as_tree(descendants, current_branch=current))
        return

    branches = manager.list_branches()
    if format == "json":
        data: dict[str, Any] = {
            "repo": services.record.display_name,
            "default_branch": manager.default_branch(),
            "current_branch": current,
            "branches": [branch_to_dict(b) for b in branches],
        }
        emit_json(data)
        return
    machine_output(format_branches_as_tree(branches, current_branch=current))
