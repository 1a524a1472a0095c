"""Durable per-repository branch graph storage.

The graph lives in `<repo>/.speck/branches.json`. Writes are atomic (temp file
+ rename) and mutations are serialized across processes with an advisory
lock on `<repo>/.speck/branches.json.lock`.
"""

import fcntl
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Literal

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from speckstack.core.branch_types import Branch, BranchGraph, BranchStatus
from speckstack.core.errors import CorruptStoreError, UnsupportedSchemaVersionError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
SPECK_DIR = ".speck"
STORE_FILENAME = "branches.json"


def store_path_for_repo(repo_root: Path) -> Path:
    """Well-known location of the branch store inside a repository."""
    return repo_root / SPECK_DIR / STORE_FILENAME


class StoredBranch(BaseModel):
    """On-disk schema of a single branch record.

    Unknown fields are ignored for forward compatibility.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    base_branch: str = Field(alias="baseBranch", min_length=1)
    spec_id: str | None = Field(default=None, alias="specId")
    status: Literal["active", "merged", "abandoned"]
    worktree_path: str | None = Field(default=None, alias="worktreePath")
    created_at: AwareDatetime = Field(alias="createdAt")


class StoredGraph(BaseModel):
    """On-disk schema of the whole store file."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    version: int
    default_branch: str | None = Field(default=None, alias="defaultBranch")
    branches: list[StoredBranch] = Field(default_factory=list)


def _to_stored(graph: BranchGraph) -> StoredGraph:
    return StoredGraph(
        version=SCHEMA_VERSION,
        default_branch=graph.default_branch,
        branches=[
            StoredBranch(
                name=b.name,
                base_branch=b.base_branch,
                spec_id=b.spec_id,
                status=b.status.value,
                worktree_path=str(b.worktree_path) if b.worktree_path is not None else None,
                created_at=b.created_at,
            )
            for b in graph.branches
        ],
    )


def _from_stored(stored: StoredGraph) -> BranchGraph:
    return BranchGraph(
        branches=tuple(
            Branch(
                name=b.name,
                base_branch=b.base_branch,
                spec_id=b.spec_id,
                status=BranchStatus(b.status),
                worktree_path=Path(b.worktree_path) if b.worktree_path is not None else None,
                created_at=b.created_at,
            )
            for b in stored.branches
        ),
        default_branch=stored.default_branch,
    )


def serialize_graph(graph: BranchGraph) -> str:
    """Render a graph as the JSON document written to disk."""
    data = _to_stored(graph).model_dump(mode="json", by_alias=True)
    return json.dumps(data, indent=2) + "\n"


def parse_graph(content: str, path: Path) -> BranchGraph:
    """Parse a store document, failing fast on anything unexpected.

    Raises:
        CorruptStoreError: If the content is not a valid store document
        UnsupportedSchemaVersionError: If the schema version is not SCHEMA_VERSION
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise CorruptStoreError(path, f"invalid JSON ({e})") from e

    if not isinstance(data, dict):
        raise CorruptStoreError(path, "top-level value is not an object")

    if "version" not in data:
        raise CorruptStoreError(path, "missing schema version")

    version = data["version"]
    if isinstance(version, bool) or version != SCHEMA_VERSION:
        raise UnsupportedSchemaVersionError(path, version, SCHEMA_VERSION)

    try:
        stored = StoredGraph.model_validate(data)
    except PydanticValidationError as e:
        raise CorruptStoreError(path, str(e)) from e

    names = [b.name for b in stored.branches]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise CorruptStoreError(path, f"duplicate branch names: {', '.join(duplicates)}")

    return _from_stored(stored)


class GraphStore(ABC):
    """Interface for branch graph persistence."""

    @property
    @abstractmethod
    def path(self) -> Path:
        """Location of the store (used in error messages)."""
        ...

    @abstractmethod
    def load(self) -> BranchGraph:
        """Load the graph. A missing store is an empty graph."""
        ...

    @abstractmethod
    def save(self, graph: BranchGraph) -> None:
        """Persist the graph atomically."""
        ...

    @abstractmethod
    def locked(self) -> Iterator[None]:
        """Context manager holding the exclusive mutation lock."""
        ...


class RealGraphStore(GraphStore):
    """JSON file store with atomic writes and fcntl locking."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock_path = path.with_name(path.name + ".lock")

    @staticmethod
    def for_repo(repo_root: Path) -> "RealGraphStore":
        return RealGraphStore(store_path_for_repo(repo_root))

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> BranchGraph:
        if not self._path.exists():
            return BranchGraph.empty()

        raw = self._path.read_bytes()
        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CorruptStoreError(self._path, f"not valid UTF-8 ({e})") from e
        return parse_graph(content, self._path)

    def save(self, graph: BranchGraph) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = serialize_graph(graph)

        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug("Saved %d branches to %s", len(graph), self._path)

    @contextmanager
    def locked(self) -> Iterator[None]:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "a", encoding="utf-8") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


class FakeGraphStore(GraphStore):
    """In-memory graph store for testing.

    Optionally raises `load_error` from every load() to simulate a corrupt or
    unreadable store.
    """

    def __init__(
        self,
        graph: BranchGraph | None = None,
        *,
        path: Path = Path("/fake/.speck/branches.json"),
        load_error: Exception | None = None,
    ) -> None:
        self._graph = graph if graph is not None else BranchGraph.empty()
        self._path = path
        self._load_error = load_error
        self._lock = threading.Lock()
        self._save_count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def graph(self) -> BranchGraph:
        """Currently stored graph. For test assertions only."""
        return self._graph

    @property
    def save_count(self) -> int:
        """Number of save() calls made. For test assertions only."""
        return self._save_count

    def load(self) -> BranchGraph:
        if self._load_error is not None:
            raise self._load_error
        return self._graph

    def save(self, graph: BranchGraph) -> None:
        self._graph = graph
        self._save_count += 1

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._lock:
            yield
