"""Git capability interface consumed by the stack core.

The core never talks to git directly; it calls this capability set, which
reports failures as typed results distinguishing "not found" from "operation
failed" from "timed out".

Architecture:
- Git: Abstract base class defining the interface
- RealGit: Production implementation using subprocess
- FakeGit: In-memory implementation for tests
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from speckstack.core.errors import CollaboratorFailureError, CollaboratorTimeoutError


class GitOutcome(Enum):
    """Outcome category of a collaborator call."""

    OK = "ok"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class GitResult[T]:
    """Typed result of a git capability call."""

    outcome: GitOutcome
    value: T | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome == GitOutcome.OK

    @staticmethod
    def success[V](value: V) -> "GitResult[V]":
        return GitResult(outcome=GitOutcome.OK, value=value)

    @staticmethod
    def not_found(message: str) -> "GitResult":
        return GitResult(outcome=GitOutcome.NOT_FOUND, message=message)

    @staticmethod
    def failed(message: str) -> "GitResult":
        return GitResult(outcome=GitOutcome.FAILED, message=message)

    @staticmethod
    def timed_out(message: str) -> "GitResult":
        return GitResult(outcome=GitOutcome.TIMED_OUT, message=message)


def unwrap[T](result: GitResult[T], operation: str) -> T | None:
    """Return the value of a successful result or raise the matching error.

    Args:
        result: Result returned by a Git method
        operation: Human-readable description used in the error message

    Raises:
        CollaboratorTimeoutError: If the call timed out
        CollaboratorFailureError: If the call failed or the target was not found
    """
    if result.outcome == GitOutcome.OK:
        return result.value
    if result.outcome == GitOutcome.TIMED_OUT:
        raise CollaboratorTimeoutError(
            f"git timed out while trying to {operation}: {result.message}"
        )
    raise CollaboratorFailureError(f"git failed to {operation}: {result.message}")


class Git(ABC):
    """Abstract interface for git operations.

    All implementations (real and fake) must implement this interface.
    This interface contains ONLY runtime operations - no test setup methods.
    """

    @abstractmethod
    def get_git_common_dir(self, cwd: Path) -> Path | None:
        """Get the common git directory (shared by all worktrees), or None outside git."""
        ...

    @abstractmethod
    def get_trunk_branch(self, repo_root: Path) -> str:
        """Get the default branch name for the repository.

        Detects trunk by checking git's remote HEAD reference, falling back to
        the first existing of 'main' and 'master', and finally to 'main'.
        """
        ...

    @abstractmethod
    def get_current_branch(self, cwd: Path) -> str | None:
        """Get the currently checked-out branch (None when detached)."""
        ...

    @abstractmethod
    def path_exists(self, path: Path) -> bool:
        """Check if a path exists on the filesystem."""
        ...

    @abstractmethod
    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory."""
        ...

    @abstractmethod
    def list_branches(self, repo_root: Path) -> GitResult[list[str]]:
        """List all local branch names in the repository."""
        ...

    @abstractmethod
    def list_branches_with_upstream(
        self, repo_root: Path, pattern: str | None = None
    ) -> GitResult[list[tuple[str, str | None]]]:
        """List local branches with their upstream (e.g. "origin/main") or None.

        `pattern` is a git branch --list glob such as "feature/*".
        """
        ...

    @abstractmethod
    def create_branch(self, repo_root: Path, name: str, base: str) -> GitResult[None]:
        """Create branch `name` pointing at `base` without checking it out.

        Returns not_found if `base` does not exist.
        """
        ...

    @abstractmethod
    def create_worktree(self, repo_root: Path, path: Path, branch: str) -> GitResult[None]:
        """Add a worktree at `path` with the existing `branch` checked out."""
        ...

    @abstractmethod
    def remove_worktree(self, repo_root: Path, path: Path) -> GitResult[None]:
        """Remove the worktree at `path`.

        Returns not_found if no worktree is registered at `path`.
        """
        ...

    @abstractmethod
    def get_current_commit(self, cwd: Path) -> GitResult[str]:
        """Get the commit SHA of HEAD."""
        ...
