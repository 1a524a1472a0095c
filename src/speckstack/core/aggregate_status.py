"""Cross-repository status aggregation.

Reads every repository of a multi-repo topology concurrently and merges the
results into one report grouped by repository. A repository whose store
cannot be read becomes a failure entry; the others still report.
"""

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from speckstack.core.branch_types import Branch, BranchStatus, RepoRecord
from speckstack.core.errors import StackError
from speckstack.core.graph_store import GraphStore
from speckstack.core.repo_config import DEFAULT_AGGREGATE_MAX_WORKERS
from speckstack.core.repo_discovery import RepoDiscovery

logger = logging.getLogger(__name__)

StoreFactory = Callable[[Path], GraphStore]


@dataclass(frozen=True)
class StatusCounts:
    active: int = 0
    merged: int = 0
    abandoned: int = 0

    @property
    def total(self) -> int:
        return self.active + self.merged + self.abandoned

    def __add__(self, other: "StatusCounts") -> "StatusCounts":
        return StatusCounts(
            active=self.active + other.active,
            merged=self.merged + other.merged,
            abandoned=self.abandoned + other.abandoned,
        )


@dataclass(frozen=True)
class RepoStatus:
    """Branch summary of one repository."""

    record: RepoRecord
    display_name: str
    counts: StatusCounts
    stack_roots: tuple[str, ...]
    branches: tuple[Branch, ...]


@dataclass(frozen=True)
class RepoFailure:
    """A repository whose store could not be read."""

    display_name: str
    path: Path
    error_type: str
    message: str


@dataclass(frozen=True)
class AggregateReport:
    """Per-repository results in topology order (root first)."""

    repos: tuple[RepoStatus, ...] = ()
    failures: tuple[RepoFailure, ...] = ()
    entries: tuple[RepoStatus | RepoFailure, ...] = field(default=())

    def totals(self) -> StatusCounts:
        total = StatusCounts()
        for repo in self.repos:
            total = total + repo.counts
        return total

    def branches_for_spec(self, spec_id: str) -> list[tuple[str, Branch]]:
        """(repository display name, branch) pairs working on `spec_id`."""
        return [
            (repo.display_name, branch)
            for repo in self.repos
            for branch in repo.branches
            if branch.spec_id == spec_id
        ]


def summarize(record: RepoRecord, display_name: str, branches: list[Branch]) -> RepoStatus:
    counts = StatusCounts(
        active=sum(1 for b in branches if b.status == BranchStatus.ACTIVE),
        merged=sum(1 for b in branches if b.status == BranchStatus.MERGED),
        abandoned=sum(1 for b in branches if b.status == BranchStatus.ABANDONED),
    )
    tracked = {b.name for b in branches}
    roots = tuple(b.name for b in branches if b.base_branch not in tracked)
    return RepoStatus(
        record=record,
        display_name=display_name,
        counts=counts,
        stack_roots=roots,
        branches=tuple(branches),
    )


def _unique_display_names(records: list[RepoRecord]) -> list[str]:
    """Display names, with the path appended where two repos share a name."""
    seen: dict[str, int] = {}
    for record in records:
        seen[record.display_name] = seen.get(record.display_name, 0) + 1
    return [
        f"{r.display_name} ({r.path})" if seen[r.display_name] > 1 else r.display_name
        for r in records
    ]


class AggregateStatusService:
    """Builds an AggregateReport over a repository topology."""

    def __init__(
        self,
        discovery: RepoDiscovery,
        store_factory: StoreFactory,
        *,
        max_workers: int = DEFAULT_AGGREGATE_MAX_WORKERS,
    ) -> None:
        self._discovery = discovery
        self._store_factory = store_factory
        self._max_workers = max_workers

    def topology(self, record: RepoRecord) -> list[RepoRecord]:
        """Root record followed by its siblings, de-duplicated by path."""
        root = self._discovery.root_record(record)
        records = [root]
        known = {root.path.resolve()}
        for sibling in self._discovery.list_sibling_repos(record):
            resolved = sibling.path.resolve()
            if resolved in known:
                continue
            known.add(resolved)
            records.append(sibling)
        return records

    def aggregate(self, record: RepoRecord) -> AggregateReport:
        records = self.topology(record)
        names = _unique_display_names(records)

        def read_one(item: tuple[RepoRecord, str]) -> RepoStatus | RepoFailure:
            repo, display_name = item
            try:
                graph = self._store_factory(repo.path).load()
            except (StackError, OSError) as e:
                logger.warning("Failed to read branches of %s: %s", display_name, e)
                return RepoFailure(
                    display_name=display_name,
                    path=repo.path,
                    error_type=type(e).__name__,
                    message=str(e),
                )
            return summarize(repo, display_name, list(graph.branches))

        workers = max(1, min(self._max_workers, len(records)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            entries = list(executor.map(read_one, zip(records, names, strict=True)))

        logger.debug("Aggregated %d repositories", len(entries))
        return AggregateReport(
            repos=tuple(e for e in entries if isinstance(e, RepoStatus)),
            failures=tuple(e for e in entries if isinstance(e, RepoFailure)),
            entries=tuple(entries),
        )
