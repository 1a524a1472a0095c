"""Tests for text and JSON rendering helpers."""

from datetime import UTC, datetime
from pathlib import Path

from speckstack.cli.rendering import (
    branch_label,
    format_branches_as_tree,
    format_stack_chain,
    report_to_dict,
)
from speckstack.core.aggregate_status import AggregateReport, RepoFailure, summarize
from speckstack.core.branch_types import Branch, BranchStatus, RepoRecord, RepoRole


def _branch(name: str, base: str = "main", **kwargs: object) -> Branch:
    return Branch(
        name=name,
        base_branch=base,
        status=kwargs.pop("status", BranchStatus.ACTIVE),  # type: ignore[arg-type]
        created_at=datetime(2025, 1, 1, tzinfo=UTC),
        **kwargs,  # type: ignore[arg-type]
    )


def test_tree_with_siblings_and_multiple_anchors() -> None:
    branches = [
        _branch("a"),
        _branch("b", "a"),
        _branch("c", "a"),
        _branch("hotfix", "release"),
    ]

    assert format_branches_as_tree(branches) == "\n".join(
        [
            "main",
            "└─ ● a",
            "   ├─ ● b",
            "   └─ ● c",
            "release",
            "└─ ● hotfix",
        ]
    )


def test_tree_can_hide_inactive_branches() -> None:
    """Children of a hidden branch hang off its name instead."""
    branches = [_branch("a", status=BranchStatus.MERGED), _branch("b", "a")]

    assert format_branches_as_tree(branches, include_inactive=False) == "a\n└─ ● b"


def test_label_shows_status_spec_and_worktree() -> None:
    branch = _branch(
        "a", status=BranchStatus.ABANDONED, spec_id="007-x", worktree_path=Path("/wt/a")
    )

    assert branch_label(branch) == "✗ a [abandoned] (007-x) @ /wt/a"


def test_stack_chain_indents_each_level() -> None:
    chain = [_branch("a"), _branch("b", "a")]

    assert format_stack_chain("main", chain) == "main\n└─ ● a\n   └─ ● b"


def test_current_branch_is_marked() -> None:
    branches = [_branch("a"), _branch("b", "a")]

    tree = format_branches_as_tree(branches, current_branch="b")
    chain = format_stack_chain("main", branches, "a")

    assert tree == "main\n└─ ● a\n   └─ ● b (current)"
    assert chain == "main\n└─ ● a (current)\n   └─ ● b"


def test_report_to_dict_includes_failures() -> None:
    record = RepoRecord(path=Path("/r/api"), display_name="api", role=RepoRole.MULTI_REPO_CHILD)
    status = summarize(record, "api", [_branch("a"), _branch("b", status=BranchStatus.MERGED)])
    failure = RepoFailure(
        display_name="web", path=Path("/r/web"), error_type="CorruptStoreError", message="bad"
    )
    report = AggregateReport(repos=(status,), failures=(failure,), entries=(status, failure))

    data = report_to_dict(report)

    assert data["repos"][0]["counts"] == {"active": 1, "merged": 1, "abandoned": 0}
    assert data["repos"][1]["error"] == {"type": "CorruptStoreError", "message": "bad"}
    assert data["totals"] == {"active": 1, "merged": 1, "abandoned": 0}
    assert data["failures"] == 1
