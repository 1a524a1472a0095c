"""Production Git implementation using subprocess.

Every call carries a bounded timeout so a hung git process surfaces as a
timed_out result instead of an indefinite stall.
"""

import logging
from pathlib import Path

from speckstack.core.git.abc import Git, GitResult
from speckstack.core.subprocess import SubprocessTimeoutError, run_subprocess_with_context

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 30.0

# stderr fragments git prints when a ref or worktree does not exist
_NOT_FOUND_MARKERS = (
    "not a valid object name",
    "invalid reference",
    "unknown revision",
    "is not a working tree",
    "not a valid ref",
)


def _is_not_found(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in _NOT_FOUND_MARKERS)


class RealGit(Git):
    """Production implementation using subprocess.

    All git operations execute actual git commands via subprocess.
    """

    def __init__(self, timeout: float = DEFAULT_GIT_TIMEOUT) -> None:
        self._timeout = timeout

    def _run(self, args: list[str], operation: str, cwd: Path) -> GitResult[str]:
        cmd = ["git", *args]
        logger.debug("Running %s in %s", " ".join(cmd), cwd)
        try:
            result = run_subprocess_with_context(
                cmd,
                operation_context=operation,
                cwd=cwd,
                timeout=self._timeout,
                check=False,
            )
        except SubprocessTimeoutError as e:
            return GitResult.timed_out(str(e))
        except RuntimeError as e:
            return GitResult.failed(str(e))

        if result.returncode != 0:
            message = f"{' '.join(cmd)} exited {result.returncode}: {result.stderr.strip()}"
            if _is_not_found(result.stderr):
                return GitResult.not_found(message)
            return GitResult.failed(message)

        return GitResult.success(result.stdout)

    def get_git_common_dir(self, cwd: Path) -> Path | None:
        result = self._run(
            ["rev-parse", "--path-format=absolute", "--git-common-dir"], "find git common dir", cwd
        )
        if not result.ok or result.value is None:
            return None

        git_dir = Path(result.value.strip())
        if not git_dir.is_absolute():
            git_dir = cwd / git_dir
        return git_dir.resolve()

    def get_trunk_branch(self, repo_root: Path) -> str:
        # 1. Try git symbolic-ref to detect default branch
        result = self._run(
            ["symbolic-ref", "refs/remotes/origin/HEAD"], "detect remote HEAD", repo_root
        )
        if result.ok and result.value is not None:
            ref = result.value.strip()
            if ref.startswith("refs/remotes/origin/"):
                return ref.replace("refs/remotes/origin/", "")

        # 2. Fallback: try 'main' then 'master', use first that exists
        for candidate in ["main", "master"]:
            check = self._run(
                ["show-ref", "--verify", f"refs/heads/{candidate}"],
                f"check for '{candidate}'",
                repo_root,
            )
            if check.ok:
                return candidate

        # 3. Final fallback: 'main'
        return "main"

    def get_current_branch(self, cwd: Path) -> str | None:
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"], "get current branch", cwd)
        if not result.ok or result.value is None:
            return None

        branch = result.value.strip()
        if branch == "HEAD":
            return None
        return branch

    def path_exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def list_branches(self, repo_root: Path) -> GitResult[list[str]]:
        result = self._run(
            ["branch", "--format=%(refname:short)"], "list local branches", repo_root
        )
        if not result.ok or result.value is None:
            return GitResult(outcome=result.outcome, message=result.message)
        return GitResult.success(
            [line.strip() for line in result.value.splitlines() if line.strip()]
        )

    def list_branches_with_upstream(
        self, repo_root: Path, pattern: str | None = None
    ) -> GitResult[list[tuple[str, str | None]]]:
        args = ["branch", "--list", "--format=%(refname:short)|%(upstream:short)"]
        if pattern is not None:
            args.append(pattern)
        result = self._run(args, "list branches with upstreams", repo_root)
        if not result.ok or result.value is None:
            return GitResult(outcome=result.outcome, message=result.message)

        branches: list[tuple[str, str | None]] = []
        for line in result.value.splitlines():
            if not line.strip():
                continue
            name, _, upstream = line.partition("|")
            branches.append((name.strip(), upstream.strip() or None))
        return GitResult.success(branches)

    def create_branch(self, repo_root: Path, name: str, base: str) -> GitResult[None]:
        result = self._run(["branch", name, base], f"create branch '{name}'", repo_root)
        if not result.ok:
            return GitResult(outcome=result.outcome, message=result.message)
        return GitResult.success(None)

    def create_worktree(self, repo_root: Path, path: Path, branch: str) -> GitResult[None]:
        result = self._run(
            ["worktree", "add", str(path), branch],
            f"add worktree for '{branch}'",
            repo_root,
        )
        if not result.ok:
            return GitResult(outcome=result.outcome, message=result.message)
        return GitResult.success(None)

    def remove_worktree(self, repo_root: Path, path: Path) -> GitResult[None]:
        result = self._run(
            ["worktree", "remove", "--force", str(path)],
            f"remove worktree at {path}",
            repo_root,
        )
        if not result.ok:
            return GitResult(outcome=result.outcome, message=result.message)

        # Clean up stale worktree metadata
        prune = self._run(["worktree", "prune"], "prune worktrees", repo_root)
        if not prune.ok:
            logger.warning("git worktree prune failed: %s", prune.message)
        return GitResult.success(None)

    def get_current_commit(self, cwd: Path) -> GitResult[str]:
        result = self._run(["rev-parse", "HEAD"], "get current commit", cwd)
        if not result.ok or result.value is None:
            return result
        return GitResult.success(result.value.strip())
