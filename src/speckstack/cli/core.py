"""Wire core services for the repository a command runs in."""

from dataclasses import dataclass

from speckstack.core.aggregate_status import AggregateStatusService
from speckstack.core.branch_types import RepoRecord
from speckstack.core.context import StackContext
from speckstack.core.git.abc import Git
from speckstack.core.git.real import RealGit
from speckstack.core.graph_store import GraphStore
from speckstack.core.repo_config import RepoConfig, load_repo_config
from speckstack.core.repo_discovery import RepoDiscovery
from speckstack.core.stack_manager import StackManager
from speckstack.core.worktree_coordinator import WorktreeCoordinator


@dataclass(frozen=True)
class RepoServices:
    """Everything a command needs to operate on the current repository."""

    record: RepoRecord
    config: RepoConfig
    git: Git
    store: GraphStore
    discovery: RepoDiscovery
    manager: StackManager
    worktrees: WorktreeCoordinator


def git_for_config(ctx: StackContext, config: RepoConfig) -> Git:
    """Apply the repository's configured git timeout to the real collaborator."""
    if isinstance(ctx.git, RealGit):
        return RealGit(timeout=config.git_timeout)
    return ctx.git


def discover_repo(ctx: StackContext) -> tuple[RepoDiscovery, RepoRecord]:
    """Locate the repository containing ctx.cwd.

    Raises:
        NotInRepositoryError: If the working directory is outside git
    """
    discovery = RepoDiscovery(ctx.git)
    return discovery, discovery.resolve_context(ctx.cwd)


def load_services(ctx: StackContext) -> RepoServices:
    """Discover the repository, read its config and build the core services.

    Raises:
        NotInRepositoryError: If the working directory is outside git
        ValidationError: If `.speck/config.toml` is malformed
    """
    discovery, record = discover_repo(ctx)
    config = load_repo_config(record.path)
    git = git_for_config(ctx, config)
    store = ctx.store_factory(record.path)
    worktrees = WorktreeCoordinator(store, git, record.path, worktrees_dir=config.worktrees_dir)
    manager = StackManager(
        store,
        git,
        record.path,
        ctx.clock,
        configured_default_branch=config.default_branch,
        worktrees=worktrees,
    )
    return RepoServices(
        record=record,
        config=config,
        git=git,
        store=store,
        discovery=RepoDiscovery(git),
        manager=manager,
        worktrees=worktrees,
    )


def aggregate_service(ctx: StackContext, services: RepoServices) -> AggregateStatusService:
    return AggregateStatusService(
        services.discovery,
        ctx.store_factory,
        max_workers=services.config.aggregate_max_workers,
    )
