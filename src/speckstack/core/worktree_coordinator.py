"""Isolated worktree provisioning keyed off branch records.

Provisioning and the record update form one logical transaction: the
worktree is created first, the path is persisted second, and a failed
persist rolls the worktree back. A record never points at a worktree that
was not created.
"""

import logging
import shutil
from dataclasses import replace
from pathlib import Path

from speckstack.core.errors import BranchNotFoundError, PathConflictError, ValidationError
from speckstack.core.git.abc import Git, GitOutcome, unwrap
from speckstack.core.graph_store import GraphStore

logger = logging.getLogger(__name__)


def default_worktrees_dir(repo_root: Path) -> Path:
    """Worktrees live next to the repository: <parent>/<repo-name>-worktrees."""
    return repo_root.parent / f"{repo_root.name}-worktrees"


class WorktreeCoordinator:
    """Creates and removes per-branch worktrees through the git collaborator."""

    def __init__(
        self,
        store: GraphStore,
        git: Git,
        repo_root: Path,
        worktrees_dir: Path | None = None,
    ) -> None:
        self._store = store
        self._git = git
        self._repo_root = repo_root
        self._worktrees_dir = (
            worktrees_dir if worktrees_dir is not None else default_worktrees_dir(repo_root)
        )

    @property
    def worktrees_dir(self) -> Path:
        return self._worktrees_dir

    def default_path(self, branch_name: str) -> Path:
        return self._worktrees_dir / branch_name.replace("/", "-")

    def check_target(self, path: Path, *, user_specified: bool) -> None:
        """Fail if `path` exists and is not an empty directory.

        Raises:
            PathConflictError: If the path is occupied
        """
        if not path.exists():
            return
        if path.is_dir() and not any(path.iterdir()):
            return
        raise PathConflictError(path, user_specified=user_specified)

    def provision(self, branch_name: str, target_path: Path | None = None) -> Path:
        """Create a worktree for a tracked branch and record its path.

        Args:
            branch_name: Tracked branch to check out in the new worktree
            target_path: Where to create it (default: default_path(branch_name))

        Returns:
            The path of the created worktree

        Raises:
            BranchNotFoundError: If the branch is not tracked
            ValidationError: If the branch already has a worktree
            PathConflictError: If the target path is occupied
            CollaboratorTimeoutError, CollaboratorFailureError: If git fails
        """
        user_specified = target_path is not None
        path = target_path if target_path is not None else self.default_path(branch_name)
        path = path.expanduser().absolute()

        with self._store.locked():
            graph = self._store.load()
            branch = graph.get(branch_name)
            if branch is None:
                raise BranchNotFoundError(branch_name)
            if branch.worktree_path is not None:
                raise ValidationError(
                    f"Branch '{branch_name}' already has a worktree at {branch.worktree_path}"
                )

            self.check_target(path, user_specified=user_specified)
            existed_before = path.exists()
            path.parent.mkdir(parents=True, exist_ok=True)

            result = self._git.create_worktree(self._repo_root, path, branch_name)
            if not result.ok and not existed_before and path.exists():
                shutil.rmtree(path, ignore_errors=True)
            unwrap(result, f"create worktree for '{branch_name}' at {path}")

            try:
                self._store.save(graph.with_replaced(replace(branch, worktree_path=path)))
            except Exception:
                logger.warning("Recording worktree failed; removing %s", path)
                rollback = self._git.remove_worktree(self._repo_root, path)
                if not rollback.ok:
                    logger.warning("Rollback of worktree %s failed: %s", path, rollback.message)
                raise

        logger.debug("Provisioned worktree for %s at %s", branch_name, path)
        return path

    def teardown(self, branch_name: str) -> Path | None:
        """Remove the worktree recorded for a branch, if any.

        Idempotent: an untracked branch or a branch without a worktree is a no-op.

        Returns:
            The removed worktree path, or None if there was nothing to remove
        """
        with self._store.locked():
            graph = self._store.load()
            branch = graph.get(branch_name)
            if branch is None or branch.worktree_path is None:
                logger.debug("No worktree recorded for %s", branch_name)
                return None

            self.release(branch.worktree_path)
            self._store.save(graph.with_replaced(replace(branch, worktree_path=None)))

        return branch.worktree_path

    def release(self, path: Path) -> None:
        """Remove a worktree without touching the store.

        Callers must already hold the store lock. A worktree git no longer
        knows about counts as removed.
        """
        result = self._git.remove_worktree(self._repo_root, path)
        if result.outcome == GitOutcome.NOT_FOUND:
            logger.warning("Worktree %s was already gone", path)
            return
        unwrap(result, f"remove worktree at {path}")
