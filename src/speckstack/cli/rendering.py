"""Presentation helpers for branch graphs and aggregate reports.

Pure formatting: functions take core data types and return strings, JSON-ready
dicts, or rich renderables. Commands decide where the output goes.
"""

from typing import Any

from rich.table import Table

from speckstack.core.aggregate_status import AggregateReport, RepoFailure, RepoStatus
from speckstack.core.branch_types import Branch, BranchStatus, StackWarning

_STATUS_MARKERS = {
    BranchStatus.ACTIVE: "●",
    BranchStatus.MERGED: "✓",
    BranchStatus.ABANDONED: "✗",
}


def branch_label(branch: Branch, current_branch: str | None = None) -> str:
    parts = [f"{_STATUS_MARKERS[branch.status]} {branch.name}"]
    if branch.name == current_branch:
        parts.append("(current)")
    if branch.status != BranchStatus.ACTIVE:
        parts.append(f"[{branch.status.value}]")
    if branch.spec_id is not None:
        parts.append(f"({branch.spec_id})")
    if branch.worktree_path is not None:
        parts.append(f"@ {branch.worktree_path}")
    return " ".join(parts)


def format_branches_as_tree(
    branches: list[Branch],
    *,
    include_inactive: bool = True,
    current_branch: str | None = None,
) -> str:
    """Format tracked branches as stacks hanging off their external bases.

    Args:
        branches: All tracked branches in creation order
        include_inactive: Show merged and abandoned branches too
        current_branch: Checked-out branch to mark with "(current)"

    Returns:
        Multi-line string with tree visualization
    """
    visible = [b for b in branches if include_inactive or b.status == BranchStatus.ACTIVE]
    if not visible:
        return "No branches found"

    by_name = {b.name: b for b in visible}
    children: dict[str, list[Branch]] = {}
    for branch in visible:
        children.setdefault(branch.base_branch, []).append(branch)

    # External bases (untracked, or hidden because inactive) anchor each stack
    anchors: list[str] = []
    for branch in visible:
        if branch.base_branch not in by_name and branch.base_branch not in anchors:
            anchors.append(branch.base_branch)

    lines: list[str] = []
    for anchor in anchors:
        lines.append(anchor)
        stack_roots = children.get(anchor, [])
        for i, root in enumerate(stack_roots):
            _format_branch_recursive(
                branch=root,
                children=children,
                lines=lines,
                prefix="",
                is_last=i == len(stack_roots) - 1,
                current_branch=current_branch,
            )
    return "\n".join(lines)


def _format_branch_recursive(
    branch: Branch,
    children: dict[str, list[Branch]],
    lines: list[str],
    prefix: str,
    is_last: bool,
    current_branch: str | None,
) -> None:
    connector = "└─" if is_last else "├─"
    lines.append(f"{prefix}{connector} {branch_label(branch, current_branch)}")

    kids = children.get(branch.name, [])
    child_prefix = prefix + ("   " if is_last else "│  ")
    for i, child in enumerate(kids):
        _format_branch_recursive(
            branch=child,
            children=children,
            lines=lines,
            prefix=child_prefix,
            is_last=i == len(kids) - 1,
            current_branch=current_branch,
        )


def format_stack_chain(base: str, chain: list[Branch], current_branch: str | None = None) -> str:
    """Render an ancestor chain root-to-leaf, starting from its external base."""
    lines = [base]
    for depth, branch in enumerate(chain):
        lines.append(f"{'   ' * depth}└─ {branch_label(branch, current_branch)}")
    return "\n".join(lines)


def format_warnings(warnings: list[StackWarning]) -> list[str]:
    return [f"⚠ {w.branch}: {w.message}" for w in warnings]


def branch_to_dict(branch: Branch) -> dict[str, Any]:
    return {
        "name": branch.name,
        "base_branch": branch.base_branch,
        "status": branch.status.value,
        "spec_id": branch.spec_id,
        "worktree_path": str(branch.worktree_path) if branch.worktree_path else None,
        "created_at": branch.created_at.isoformat(),
    }


def warning_to_dict(warning: StackWarning) -> dict[str, Any]:
    return {
        "branch": warning.branch,
        "message": warning.message,
        "suggested_base": warning.suggested_base,
    }


def report_to_dict(report: AggregateReport) -> dict[str, Any]:
    """JSON-ready view of an aggregate report, one entry per repository."""
    repos: list[dict[str, Any]] = []
    for entry in report.entries:
        if isinstance(entry, RepoFailure):
            repos.append(
                {
                    "name": entry.display_name,
                    "path": str(entry.path),
                    "error": {"type": entry.error_type, "message": entry.message},
                }
            )
            continue
        repos.append(
            {
                "name": entry.display_name,
                "path": str(entry.record.path),
                "role": entry.record.role.value,
                "counts": {
                    "active": entry.counts.active,
                    "merged": entry.counts.merged,
                    "abandoned": entry.counts.abandoned,
                },
                "stack_roots": list(entry.stack_roots),
                "branches": [branch_to_dict(b) for b in entry.branches],
            }
        )
    totals = report.totals()
    return {
        "repos": repos,
        "totals": {
            "active": totals.active,
            "merged": totals.merged,
            "abandoned": totals.abandoned,
        },
        "failures": len(report.failures),
    }


def build_aggregate_table(report: AggregateReport) -> Table:
    """Rich table with one row per repository."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("repo", style="cyan", no_wrap=True)
    table.add_column("active", justify="right")
    table.add_column("merged", justify="right")
    table.add_column("abandoned", justify="right")
    table.add_column("stacks", no_wrap=False)

    for entry in report.entries:
        if isinstance(entry, RepoStatus):
            table.add_row(
                entry.display_name,
                str(entry.counts.active),
                str(entry.counts.merged),
                str(entry.counts.abandoned),
                ", ".join(entry.stack_roots) or "-",
            )
        else:
            table.add_row(
                entry.display_name,
                "-",
                "-",
                "-",
                f"[red]{entry.error_type}: {entry.message}[/red]",
            )
    return table
