"""Fake git operations for testing.

FakeGit is an in-memory implementation of the Git capability set. Branch
state lives in memory; worktrees are materialized as real directories so
filesystem-based checks (path conflicts, teardown) behave as in production.
"""

import fnmatch
import shutil
from pathlib import Path

from speckstack.core.git.abc import Git, GitOutcome, GitResult


class FakeGit(Git):
    """In-memory fake implementation of git operations.

    State Management:
    -----------------
    Branch and worktree state is provided via constructor and mutated by
    create_branch/create_worktree/remove_worktree, exactly like a repository
    would be. Mutations are also recorded for test assertions.

    Failure Injection:
    ------------------
    `failures` maps a method name ("create_branch", "create_worktree",
    "remove_worktree", "list_branches", "list_branches_with_upstream",
    "get_current_commit") to the outcome that method should report instead
    of succeeding.

    Mutation Tracking:
    -----------------
    - created_branches: (name, base) pairs passed to create_branch
    - added_worktrees: (path, branch) pairs passed to create_worktree
    - removed_worktrees: paths passed to remove_worktree
    """

    def __init__(
        self,
        *,
        branches: list[str] | None = None,
        trunk_branch: str = "main",
        current_branch: str | None = None,
        current_commit: str = "abc1234",
        git_common_dirs: dict[Path, Path] | None = None,
        worktrees: dict[Path, str] | None = None,
        upstreams: dict[str, str] | None = None,
        failures: dict[str, GitOutcome] | None = None,
    ) -> None:
        """Create FakeGit with pre-configured state.

        Args:
            branches: Local branch names (default: just the trunk branch)
            trunk_branch: Name returned by get_trunk_branch()
            current_branch: Name returned by get_current_branch()
            current_commit: SHA returned by get_current_commit()
            git_common_dirs: Mapping of cwd -> git common dir. When omitted, the
                real filesystem is searched upward for a .git directory.
            worktrees: Pre-existing worktrees, path -> branch
            upstreams: Branch -> upstream ref (e.g. "origin/main")
            failures: Method name -> outcome to report instead of success
        """
        self._branches = list(branches) if branches is not None else [trunk_branch]
        self._trunk_branch = trunk_branch
        self._current_branch = current_branch
        self._current_commit = current_commit
        self._git_common_dirs = git_common_dirs
        self._worktrees = dict(worktrees) if worktrees is not None else {}
        self._upstreams = dict(upstreams) if upstreams is not None else {}
        self._failures = failures or {}

        self._created_branches: list[tuple[str, str]] = []
        self._added_worktrees: list[tuple[Path, str]] = []
        self._removed_worktrees: list[Path] = []

    @property
    def created_branches(self) -> list[tuple[str, str]]:
        """(name, base) pairs passed to create_branch. For test assertions only."""
        return list(self._created_branches)

    @property
    def added_worktrees(self) -> list[tuple[Path, str]]:
        """(path, branch) pairs passed to create_worktree. For test assertions only."""
        return list(self._added_worktrees)

    @property
    def removed_worktrees(self) -> list[Path]:
        """Paths passed to remove_worktree. For test assertions only."""
        return list(self._removed_worktrees)

    @property
    def branches(self) -> list[str]:
        """Current local branches. For test assertions only."""
        return list(self._branches)

    def _injected_failure(self, method: str) -> GitResult | None:
        outcome = self._failures.get(method)
        if outcome is None:
            return None
        return GitResult(outcome=outcome, message=f"injected {outcome.value} for {method}")

    def get_git_common_dir(self, cwd: Path) -> Path | None:
        if self._git_common_dirs is not None:
            return self._git_common_dirs.get(cwd)

        for parent in [cwd, *cwd.parents]:
            if (parent / ".git").is_dir():
                return (parent / ".git").resolve()
        return None

    def get_trunk_branch(self, repo_root: Path) -> str:
        return self._trunk_branch

    def get_current_branch(self, cwd: Path) -> str | None:
        return self._current_branch

    def path_exists(self, path: Path) -> bool:
        return path in self._worktrees or path.exists()

    def is_dir(self, path: Path) -> bool:
        return path in self._worktrees or path.is_dir()

    def list_branches(self, repo_root: Path) -> GitResult[list[str]]:
        failure = self._injected_failure("list_branches")
        if failure is not None:
            return failure
        return GitResult.success(list(self._branches))

    def list_branches_with_upstream(
        self, repo_root: Path, pattern: str | None = None
    ) -> GitResult[list[tuple[str, str | None]]]:
        failure = self._injected_failure("list_branches_with_upstream")
        if failure is not None:
            return failure
        return GitResult.success(
            [
                (name, self._upstreams.get(name))
                for name in self._branches
                if pattern is None or fnmatch.fnmatchcase(name, pattern)
            ]
        )

    def create_branch(self, repo_root: Path, name: str, base: str) -> GitResult[None]:
        failure = self._injected_failure("create_branch")
        if failure is not None:
            return failure
        if base not in self._branches:
            return GitResult.not_found(f"not a valid object name: '{base}'")
        if name in self._branches:
            return GitResult.failed(f"a branch named '{name}' already exists")

        self._branches.append(name)
        self._created_branches.append((name, base))
        return GitResult.success(None)

    def create_worktree(self, repo_root: Path, path: Path, branch: str) -> GitResult[None]:
        failure = self._injected_failure("create_worktree")
        if failure is not None:
            return failure
        if branch not in self._branches:
            return GitResult.not_found(f"invalid reference: {branch}")

        path.mkdir(parents=True, exist_ok=True)
        (path / ".git").write_text(f"gitdir: {repo_root / '.git'}\n", encoding="utf-8")
        self._worktrees[path] = branch
        self._added_worktrees.append((path, branch))
        return GitResult.success(None)

    def remove_worktree(self, repo_root: Path, path: Path) -> GitResult[None]:
        failure = self._injected_failure("remove_worktree")
        if failure is not None:
            return failure
        if path not in self._worktrees:
            return GitResult.not_found(f"'{path}' is not a working tree")

        del self._worktrees[path]
        if path.exists():
            shutil.rmtree(path)
        self._removed_worktrees.append(path)
        return GitResult.success(None)

    def get_current_commit(self, cwd: Path) -> GitResult[str]:
        failure = self._injected_failure("get_current_commit")
        if failure is not None:
            return failure
        return GitResult.success(self._current_commit)
