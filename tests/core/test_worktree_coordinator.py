"""Tests for worktree provisioning and teardown."""

from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path

import pytest

from speckstack.core.branch_types import Branch, BranchGraph, BranchStatus
from speckstack.core.clock import FakeClock
from speckstack.core.errors import (
    EXIT_SYSTEM_ERROR,
    EXIT_USER_ERROR,
    BranchNotFoundError,
    CollaboratorFailureError,
    PathConflictError,
    ValidationError,
)
from speckstack.core.git.abc import GitOutcome
from speckstack.core.git.fake import FakeGit
from speckstack.core.graph_store import FakeGraphStore
from speckstack.core.stack_manager import StackManager
from speckstack.core.worktree_coordinator import WorktreeCoordinator, default_worktrees_dir


def _graph(*names: str) -> BranchGraph:
    return BranchGraph(
        branches=tuple(
            Branch(
                name=n,
                base_branch="main",
                status=BranchStatus.ACTIVE,
                created_at=datetime(2025, 1, 1, tzinfo=UTC),
            )
            for n in names
        ),
        default_branch="main",
    )


class FailingSaveStore(FakeGraphStore):
    """Store whose save() always fails, to exercise rollback."""

    def save(self, graph: BranchGraph) -> None:
        raise OSError("disk full")


def test_default_worktrees_dir_sits_next_to_repo(tmp_path: Path) -> None:
    assert default_worktrees_dir(tmp_path / "repo") == tmp_path / "repo-worktrees"


def test_default_path_flattens_slashes(tmp_path: Path) -> None:
    coordinator = WorktreeCoordinator(FakeGraphStore(), FakeGit(), tmp_path / "repo")

    assert coordinator.default_path("user/feat") == tmp_path / "repo-worktrees" / "user-feat"


def test_provision_creates_worktree_and_records_path(tmp_path: Path) -> None:
    """The worktree exists on disk and the record points at it."""
    store = FakeGraphStore(_graph("a"))
    git = FakeGit(branches=["main", "a"])
    coordinator = WorktreeCoordinator(store, git, tmp_path / "repo")

    path = coordinator.provision("a")

    assert path == tmp_path / "repo-worktrees" / "a"
    assert path.is_dir()
    assert git.added_worktrees == [(path, "a")]
    assert store.graph.get("a").worktree_path == path  # type: ignore[union-attr]


def test_provision_into_empty_existing_directory(tmp_path: Path) -> None:
    """An empty directory is not a conflict."""
    target = tmp_path / "empty"
    target.mkdir()
    coordinator = WorktreeCoordinator(
        FakeGraphStore(_graph("a")), FakeGit(branches=["main", "a"]), tmp_path / "repo"
    )

    assert coordinator.provision("a", target) == target


def test_provision_user_path_conflict_is_user_error(tmp_path: Path) -> None:
    """A non-empty path the user chose exits 1 and nothing is recorded."""
    target = tmp_path / "taken"
    target.mkdir()
    (target / "file.txt").write_text("x", encoding="utf-8")
    store = FakeGraphStore(_graph("a"))
    git = FakeGit(branches=["main", "a"])
    coordinator = WorktreeCoordinator(store, git, tmp_path / "repo")

    with pytest.raises(PathConflictError) as exc_info:
        coordinator.provision("a", target)

    assert exc_info.value.exit_code == EXIT_USER_ERROR
    assert git.added_worktrees == []
    assert store.save_count == 0


def test_provision_generated_path_conflict_is_system_error(tmp_path: Path) -> None:
    """A collision on a generated path means the environment is off."""
    coordinator = WorktreeCoordinator(
        FakeGraphStore(_graph("a")), FakeGit(branches=["main", "a"]), tmp_path / "repo"
    )
    occupied = coordinator.default_path("a")
    occupied.parent.mkdir(parents=True)
    occupied.write_text("not a directory", encoding="utf-8")

    with pytest.raises(PathConflictError) as exc_info:
        coordinator.provision("a")

    assert exc_info.value.exit_code == EXIT_SYSTEM_ERROR


def test_provision_untracked_branch(tmp_path: Path) -> None:
    coordinator = WorktreeCoordinator(FakeGraphStore(), FakeGit(), tmp_path / "repo")

    with pytest.raises(BranchNotFoundError):
        coordinator.provision("ghost")


def test_provision_twice_is_refused(tmp_path: Path) -> None:
    """One worktree per branch."""
    coordinator = WorktreeCoordinator(
        FakeGraphStore(_graph("a")), FakeGit(branches=["main", "a"]), tmp_path / "repo"
    )
    coordinator.provision("a")

    with pytest.raises(ValidationError, match="already has a worktree"):
        coordinator.provision("a", tmp_path / "elsewhere")


def test_provision_git_failure_leaves_no_record(tmp_path: Path) -> None:
    """A failed git call never produces a record pointing at nothing."""
    store = FakeGraphStore(_graph("a"))
    git = FakeGit(branches=["main", "a"], failures={"create_worktree": GitOutcome.FAILED})
    coordinator = WorktreeCoordinator(store, git, tmp_path / "repo")

    with pytest.raises(CollaboratorFailureError):
        coordinator.provision("a")

    assert store.graph.get("a").worktree_path is None  # type: ignore[union-attr]
    assert not coordinator.default_path("a").exists()


def test_provision_rolls_back_when_record_cannot_be_saved(tmp_path: Path) -> None:
    """If persisting fails, the fresh worktree is removed again."""
    git = FakeGit(branches=["main", "a"])
    coordinator = WorktreeCoordinator(FailingSaveStore(_graph("a")), git, tmp_path / "repo")

    with pytest.raises(OSError, match="disk full"):
        coordinator.provision("a")

    path = coordinator.default_path("a")
    assert git.removed_worktrees == [path]
    assert not path.exists()


def test_teardown_removes_worktree_and_clears_record(tmp_path: Path) -> None:
    store = FakeGraphStore(_graph("a"))
    git = FakeGit(branches=["main", "a"])
    coordinator = WorktreeCoordinator(store, git, tmp_path / "repo")
    path = coordinator.provision("a")

    removed = coordinator.teardown("a")

    assert removed == path
    assert not path.exists()
    assert store.graph.get("a").worktree_path is None  # type: ignore[union-attr]


def test_teardown_is_idempotent(tmp_path: Path) -> None:
    """No record or no worktree means nothing to do."""
    store = FakeGraphStore(_graph("a"))
    git = FakeGit(branches=["main", "a"])
    coordinator = WorktreeCoordinator(store, git, tmp_path / "repo")

    assert coordinator.teardown("a") is None
    assert coordinator.teardown("ghost") is None
    assert git.removed_worktrees == []


def test_teardown_tolerates_worktree_already_gone(tmp_path: Path) -> None:
    """A worktree git no longer knows still gets its record cleared."""
    graph = _graph("a")
    stale = tmp_path / "stale"
    branch = graph.get("a")
    assert branch is not None
    store = FakeGraphStore(graph.with_replaced(replace(branch, worktree_path=stale)))
    coordinator = WorktreeCoordinator(store, FakeGit(branches=["main", "a"]), tmp_path / "repo")

    assert coordinator.teardown("a") == stale
    assert store.graph.get("a").worktree_path is None  # type: ignore[union-attr]


def test_create_branch_with_worktree(tmp_path: Path) -> None:
    """StackManager provisions the worktree after recording the branch."""
    store = FakeGraphStore()
    git = FakeGit()
    repo = tmp_path / "repo"
    coordinator = WorktreeCoordinator(store, git, repo)
    manager = StackManager(store, git, repo, FakeClock(), worktrees=coordinator)

    branch = manager.create_branch("a", worktree=True)

    assert branch.worktree_path == coordinator.default_path("a")
    assert store.graph.get("a").worktree_path == branch.worktree_path  # type: ignore[union-attr]


def test_create_branch_with_conflicting_worktree_path_creates_nothing(tmp_path: Path) -> None:
    """The path check runs before the branch is created."""
    target = tmp_path / "taken"
    target.mkdir()
    (target / "x").write_text("x", encoding="utf-8")
    store = FakeGraphStore()
    git = FakeGit()
    coordinator = WorktreeCoordinator(store, git, tmp_path / "repo")
    manager = StackManager(store, git, tmp_path / "repo", FakeClock(), worktrees=coordinator)

    with pytest.raises(PathConflictError):
        manager.create_branch("a", worktree_path=target)

    assert git.created_branches == []
    assert len(store.graph) == 0


def test_delete_branch_tears_down_its_worktree(tmp_path: Path) -> None:
    """Deleting a record removes the worktree it owns."""
    store = FakeGraphStore()
    git = FakeGit()
    coordinator = WorktreeCoordinator(store, git, tmp_path / "repo")
    manager = StackManager(store, git, tmp_path / "repo", FakeClock(), worktrees=coordinator)
    path = manager.create_branch("a", worktree=True).worktree_path
    assert path is not None

    manager.delete_branch("a")

    assert git.removed_worktrees == [path]
    assert not path.exists()
    assert "a" not in store.graph
