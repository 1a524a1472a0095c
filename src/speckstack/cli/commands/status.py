import click
from rich.console import Console

from speckstack.cli.core import aggregate_service, load_services
from speckstack.cli.error_boundary import stack_error_boundary
from speckstack.cli.json_output import emit_json
from speckstack.cli.output import user_output
from speckstack.cli.rendering import (
    build_aggregate_table,
    format_warnings,
    report_to_dict,
    warning_to_dict,
)
from speckstack.core.aggregate_status import summarize
from speckstack.core.context import StackContext


@click.command("status")
@click.option("--all", "all_repos", is_flag=True, help="Aggregate every repository in the topology")
@click.option(
    "--format",
    "format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.pass_obj
@stack_error_boundary
def status_cmd(ctx: StackContext, all_repos: bool, format: str) -> None:
    """Summarize stacks and flag branches that need a rebase."""
    services = load_services(ctx)

    if all_repos:
        report = aggregate_service(ctx, services).aggregate(services.record)
        if format == "json":
            emit_json(report_to_dict(report))
            return
        console = Console(stderr=True, width=200)
        console.print(build_aggregate_table(report))
        totals = report.totals()
        user_output(
            f"Total: {totals.active} active, {totals.merged} merged, "
            f"{totals.abandoned} abandoned across {len(report.entries)} repositories"
        )
        if report.failures:
            user_output(click.style(f"{len(report.failures)} repositories failed", fg="red"))
        return

    summary = summarize(
        services.record, services.record.display_name, services.manager.list_branches()
    )
    warnings = services.manager.health_warnings()

    if format == "json":
        emit_json(
            {
                "repo": services.record.display_name,
                "role": services.record.role.value,
                "counts": {
                    "active": summary.counts.active,
                    "merged": summary.counts.merged,
                    "abandoned": summary.counts.abandoned,
                },
                "stack_roots": list(summary.stack_roots),
                "warnings": [warning_to_dict(w) for w in warnings],
            }
        )
        return

    user_output(
        f"{click.style(services.record.display_name, bold=True)} "
        f"({services.record.role.value}): {summary.counts.active} active, "
        f"{summary.counts.merged} merged, {summary.counts.abandoned} abandoned"
    )
    if summary.stack_roots:
        user_output(f"Stacks: {', '.join(summary.stack_roots)}")
    for line in format_warnings(warnings):
        user_output(click.style(line, fg="yellow"))
