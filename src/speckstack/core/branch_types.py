"""Branch graph data types."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path


class BranchStatus(Enum):
    """Lifecycle state of a tracked branch."""

    ACTIVE = "active"
    MERGED = "merged"
    ABANDONED = "abandoned"


class RepoRole(Enum):
    """Role of a repository in a multi-repo topology."""

    STANDALONE = "standalone"
    MULTI_REPO_ROOT = "multi-repo-root"
    MULTI_REPO_CHILD = "multi-repo-child"


@dataclass(frozen=True)
class Branch:
    """A tracked unit of work stacked on another branch.

    A branch whose base_branch is not itself tracked is a stack root; its base
    is an external branch such as the repository default branch.
    """

    name: str
    base_branch: str
    status: BranchStatus
    created_at: datetime
    spec_id: str | None = None
    worktree_path: Path | None = None


@dataclass(frozen=True)
class BranchGraph:
    """All tracked branches of one repository, in insertion order."""

    branches: tuple[Branch, ...] = ()
    default_branch: str | None = None

    @staticmethod
    def empty() -> "BranchGraph":
        return BranchGraph(branches=(), default_branch=None)

    def __len__(self) -> int:
        return len(self.branches)

    def __contains__(self, name: object) -> bool:
        return any(b.name == name for b in self.branches)

    def names(self) -> list[str]:
        return [b.name for b in self.branches]

    def get(self, name: str) -> Branch | None:
        for branch in self.branches:
            if branch.name == name:
                return branch
        return None

    def children_of(self, name: str) -> list[Branch]:
        """Branches based directly on `name`, in creation order."""
        return [b for b in self.branches if b.base_branch == name]

    def roots(self) -> list[Branch]:
        """Branches whose base is not tracked (stack roots), in creation order."""
        tracked = set(self.names())
        return [b for b in self.branches if b.base_branch not in tracked]

    def with_branch(self, branch: Branch) -> "BranchGraph":
        return replace(self, branches=(*self.branches, branch))

    def with_replaced(self, branch: Branch) -> "BranchGraph":
        """Replace the record of the same name, keeping its position."""
        return replace(
            self,
            branches=tuple(branch if b.name == branch.name else b for b in self.branches),
        )

    def without(self, name: str) -> "BranchGraph":
        return replace(self, branches=tuple(b for b in self.branches if b.name != name))


def find_cycle(graph: BranchGraph, start: str) -> list[str] | None:
    """Follow base pointers from `start` and return the cycle if one is reached.

    Terminates within len(graph) + 1 steps: either the walk leaves the tracked
    set (no cycle) or it revisits a node.

    Returns:
        The cycle as a list of names starting and ending with the repeated
        node, or None if the walk reaches an untracked base.
    """
    path: list[str] = []
    seen: set[str] = set()
    current = graph.get(start)
    while current is not None:
        if current.name in seen:
            first = path.index(current.name)
            return [*path[first:], current.name]
        seen.add(current.name)
        path.append(current.name)
        current = graph.get(current.base_branch)
    return None


def find_any_cycle(graph: BranchGraph) -> list[str] | None:
    """Check every branch for a cycle; used to guard against corrupted stores."""
    for branch in graph.branches:
        cycle = find_cycle(graph, branch.name)
        if cycle is not None:
            return cycle
    return None


@dataclass(frozen=True)
class RepoRecord:
    """Discovered repository metadata."""

    path: Path
    display_name: str
    role: RepoRole
    root_path: Path | None = None


@dataclass(frozen=True)
class StackWarning:
    """Health problem detected in a stack (e.g. rebase needed)."""

    branch: str
    message: str
    suggested_base: str | None = None
