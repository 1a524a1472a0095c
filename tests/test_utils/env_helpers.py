"""Test environment helpers for simulating speckstack repositories.

simulated_repo_env() builds a throwaway directory layout with a `.git`
directory so discovery, the real graph store and worktree provisioning all
work against the filesystem while git itself stays faked.

Usage:
    ```python
    def test_something(tmp_path: Path) -> None:
        runner = CliRunner()
        with simulated_repo_env(tmp_path) as env:
            ctx = env.build_context(git=FakeGit(branches=["main"]))
            result = runner.invoke(cli, ["create", "feat"], obj=ctx)
    ```

Directory Structure Created:
    base/
      ├── repo/              (repository with .git/)
      └── repo-worktrees/    (created on demand by worktree provisioning)
"""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from speckstack.core.clock import Clock
from speckstack.core.context import StackContext
from speckstack.core.git.abc import Git
from speckstack.core.git.fake import FakeGit
from speckstack.core.graph_store import RealGraphStore


@dataclass(frozen=True)
class SimulatedRepoEnv:
    base: Path
    cwd: Path
    git_dir: Path

    @property
    def store(self) -> RealGraphStore:
        return RealGraphStore.for_repo(self.cwd)

    def build_context(self, git: Git | None = None, clock: Clock | None = None) -> StackContext:
        return StackContext.for_test(
            git=git if git is not None else FakeGit(),
            clock=clock,
            cwd=self.cwd,
        )


def make_repo(path: Path) -> Path:
    """Create a directory that looks like a git repository root."""
    (path / ".git").mkdir(parents=True)
    return path


@contextmanager
def simulated_repo_env(base: Path, name: str = "repo") -> Iterator[SimulatedRepoEnv]:
    """Create base/<name> with a .git directory and chdir into it."""
    repo = make_repo(base / name)
    previous = Path.cwd()
    os.chdir(repo)
    try:
        yield SimulatedRepoEnv(base=base, cwd=repo, git_dir=repo / ".git")
    finally:
        os.chdir(previous)
