"""Application context with dependency injection."""

from dataclasses import dataclass
from pathlib import Path

from speckstack.core.aggregate_status import StoreFactory
from speckstack.core.clock import Clock, RealClock
from speckstack.core.git.abc import Git
from speckstack.core.git.real import RealGit
from speckstack.core.graph_store import GraphStore, RealGraphStore


@dataclass(frozen=True)
class StackContext:
    """Immutable context holding all dependencies for stack operations.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.
    """

    git: Git
    clock: Clock
    cwd: Path  # Current working directory at CLI invocation
    store_factory: StoreFactory  # repo root -> GraphStore

    @staticmethod
    def for_test(
        git: Git | None = None,
        clock: Clock | None = None,
        cwd: Path | None = None,
        store_factory: StoreFactory | None = None,
        stores: dict[Path, GraphStore] | None = None,
    ) -> "StackContext":
        """Create test context with optional pre-configured collaborators.

        Args:
            git: Optional Git implementation. If None, creates empty FakeGit.
            clock: Optional Clock. If None, creates FakeClock.
            cwd: Optional current working directory. If None, uses Path("/test/default/cwd").
            store_factory: Optional repo root -> GraphStore factory. If None,
                stores are looked up in `stores`, falling back to real file
                stores (useful with tmp_path repositories).
            stores: Optional repo root -> GraphStore mapping.

        Returns:
            StackContext configured with provided values and test defaults
        """
        from speckstack.core.clock import FakeClock
        from speckstack.core.git.fake import FakeGit

        if store_factory is None:
            mapping = dict(stores) if stores is not None else {}

            def lookup(repo_root: Path) -> GraphStore:
                store = mapping.get(repo_root)
                if store is None:
                    store = RealGraphStore.for_repo(repo_root)
                    mapping[repo_root] = store
                return store

            store_factory = lookup

        return StackContext(
            git=git if git is not None else FakeGit(),
            clock=clock if clock is not None else FakeClock(),
            cwd=cwd if cwd is not None else Path("/test/default/cwd"),
            store_factory=store_factory,
        )


def create_context() -> StackContext:
    """Create production context with real implementations.

    Called once at CLI entry point.
    """
    return StackContext(
        git=RealGit(),
        clock=RealClock(),
        cwd=Path.cwd(),
        store_factory=RealGraphStore.for_repo,
    )
