"""End-to-end tests against a real git binary and the installed CLI."""

import json
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from speckstack.core.clock import RealClock
from speckstack.core.git.abc import GitOutcome
from speckstack.core.git.real import RealGit
from speckstack.core.graph_store import RealGraphStore
from speckstack.core.stack_manager import StackManager
from speckstack.core.worktree_coordinator import WorktreeCoordinator

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available"),
]


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def _init_repo(path: Path) -> Path:
    path.mkdir()
    _git(path, "init", "-q", "-b", "main")
    (path / "README.md").write_text("hello\n", encoding="utf-8")
    _git(path, "add", "README.md")
    _git(path, "commit", "-q", "-m", "initial")
    return path


def _speckstack(cwd: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "speckstack", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        timeout=60,
    )


def test_real_git_collaborator_basics(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "repo")
    git = RealGit()

    assert git.get_trunk_branch(repo) == "main"
    assert git.get_current_branch(repo) == "main"
    assert git.get_git_common_dir(repo) == (repo / ".git").resolve()
    assert git.list_branches(repo).value == ["main"]
    assert git.create_branch(repo, "feat", "main").ok
    assert git.create_branch(repo, "other", "ghost").outcome == GitOutcome.NOT_FOUND
    assert git.remove_worktree(repo, tmp_path / "nowhere").outcome == GitOutcome.NOT_FOUND


def test_real_git_upstreams_feed_import(tmp_path: Path) -> None:
    """A local upstream set with --set-upstream-to becomes the imported base."""
    repo = _init_repo(tmp_path / "repo")
    _git(repo, "branch", "api")
    _git(repo, "branch", "ui")
    _git(repo, "branch", "--set-upstream-to=api", "ui")
    git = RealGit()

    listed = git.list_branches_with_upstream(repo).value or []

    assert ("ui", "api") in listed
    assert ("main", None) in listed
    assert git.list_branches_with_upstream(repo, "u*").value == [("ui", "api")]

    store = RealGraphStore.for_repo(repo)
    result = StackManager(store, git, repo, RealClock()).import_branches()

    assert [b.name for b in result.imported] == ["api", "ui"]
    assert store.load().get("ui").base_branch == "api"  # type: ignore[union-attr]


def test_manager_with_real_git_and_worktree(tmp_path: Path) -> None:
    """Branches and worktrees are created in the real repository."""
    repo = _init_repo(tmp_path / "repo")
    git = RealGit()
    store = RealGraphStore.for_repo(repo)
    coordinator = WorktreeCoordinator(store, git, repo)
    manager = StackManager(store, git, repo, RealClock(), worktrees=coordinator)

    manager.create_branch("a", spec_id="001-demo")
    b = manager.create_branch("b", "a", worktree=True)

    assert b.worktree_path is not None
    assert (b.worktree_path / "README.md").exists()
    assert set(git.list_branches(repo).value or []) >= {"main", "a", "b"}
    assert manager.list_stack("b") == ["a", "b"]

    manager.delete_branch("b")

    assert not b.worktree_path.exists()
    assert "b" in (git.list_branches(repo).value or [])


def test_cli_create_list_status(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "repo")

    created = _speckstack(repo, "create", "feat", "--spec", "001-demo")
    listed = _speckstack(repo, "list", "--format", "json")
    status = _speckstack(repo, "status", "--format", "json")

    assert created.returncode == 0, created.stderr
    assert [b["name"] for b in json.loads(listed.stdout)["branches"]] == ["feat"]
    assert json.loads(status.stdout)["counts"]["active"] == 1


def test_cli_debug_flag_logs_to_stderr(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "repo")

    result = _speckstack(repo, "--debug", "list")

    assert result.returncode == 0, result.stderr
    assert "[DEBUG speckstack" in result.stderr


def test_cli_outside_repository_exits_1(tmp_path: Path) -> None:
    result = _speckstack(tmp_path, "list")

    assert result.returncode == 1
    assert "Not inside a git repository" in result.stderr


def test_concurrent_cli_creates_keep_every_branch(tmp_path: Path) -> None:
    """N processes creating branches at once produce N records."""
    repo = _init_repo(tmp_path / "repo")
    names = [f"feat-{i}" for i in range(8)]

    procs = [
        subprocess.Popen(
            [sys.executable, "-m", "speckstack", "create", name],
            cwd=repo,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        for name in names
    ]
    results = [(p.communicate(timeout=120)[1], p) for p in procs]

    assert all(p.returncode == 0 for _, p in results), [err for err, _ in results]
    graph = RealGraphStore.for_repo(repo).load()
    assert sorted(graph.names()) == sorted(names)
