import click

from speckstack.cli.core import load_services
from speckstack.cli.error_boundary import stack_error_boundary
from speckstack.cli.json_output import emit_json
from speckstack.cli.output import user_output
from speckstack.cli.rendering import branch_to_dict
from speckstack.core.context import StackContext


@click.command("import")
@click.option("--pattern", "pattern", help="Only branches matching this glob, e.g. 'feature/*'")
@click.option(
    "--format",
    "format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.pass_obj
@stack_error_boundary
def import_cmd(ctx: StackContext, pattern: str | None, format: str) -> None:
    """Track existing git branches, stacking each on its upstream."""
    services = load_services(ctx)
    result = services.manager.import_branches(pattern)

    if format == "json":
        emit_json(
            {
                "imported": [branch_to_dict(b) for b in result.imported],
                "skipped": [{"name": s.name, "reason": s.reason} for s in result.skipped],
            }
        )
        return

    for branch in result.imported:
        user_output(
            f"✓ {click.style(branch.name, fg='cyan', bold=True)} "
            f"on {click.style(branch.base_branch, fg='yellow')}"
        )
    for skipped in result.skipped:
        user_output(f"⊘ {skipped.name} ({skipped.reason})")
    user_output(f"Imported: {len(result.imported)}, skipped: {len(result.skipped)}")
