"""Stack dependency graph operations.

StackManager validates and mutates one repository's branch graph. Every
structural check runs before anything is persisted, and every mutation holds
the store lock for the whole load -> mutate -> save sequence so concurrent
invocations serialize instead of losing updates.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path

from speckstack.core.branch_types import (
    Branch,
    BranchGraph,
    BranchStatus,
    StackWarning,
    find_any_cycle,
    find_cycle,
)
from speckstack.core.clock import Clock
from speckstack.core.errors import (
    BranchNotFoundError,
    CycleError,
    DuplicateNameError,
    HasDependentsError,
    InvalidStatusTransitionError,
    StackError,
    ValidationError,
)
from speckstack.core.git.abc import Git, unwrap
from speckstack.core.graph_store import GraphStore
from speckstack.core.worktree_coordinator import WorktreeCoordinator

logger = logging.getLogger(__name__)

BRANCH_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")
SPEC_ID_PATTERN = re.compile(r"^\d{3}-[a-z0-9-]+$")

ALLOWED_TRANSITIONS: dict[BranchStatus, frozenset[BranchStatus]] = {
    BranchStatus.ACTIVE: frozenset({BranchStatus.MERGED, BranchStatus.ABANDONED}),
    BranchStatus.ABANDONED: frozenset({BranchStatus.ACTIVE}),
    BranchStatus.MERGED: frozenset(),
}


@dataclass(frozen=True)
class SkippedImport:
    name: str
    reason: str


@dataclass(frozen=True)
class ImportResult:
    """Outcome of adopting existing git branches into tracking."""

    imported: tuple[Branch, ...]
    skipped: tuple[SkippedImport, ...]


def validate_branch_name(name: str) -> None:
    """Reject names git would refuse or that would confuse path handling.

    Raises:
        ValidationError: If the name is malformed
    """
    if not name:
        raise ValidationError("Branch name must not be empty")
    if not BRANCH_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid branch name '{name}': only letters, digits, '.', '_', '/' and '-' allowed"
        )
    if ".." in name or "//" in name:
        raise ValidationError(f"Invalid branch name '{name}': contains '..' or '//'")
    if name.startswith(("-", "/", ".")) or name.endswith(("/", ".", ".lock")):
        raise ValidationError(f"Invalid branch name '{name}': bad leading or trailing character")


def validate_spec_id(spec_id: str) -> None:
    if not SPEC_ID_PATTERN.match(spec_id):
        raise ValidationError(
            f"Invalid spec id '{spec_id}': expected NNN-short-name (e.g. 007-auth-flow)"
        )


def infer_base_from_upstream(name: str, upstream: str | None, default: str) -> str:
    """Base implied by a branch's upstream: "origin/<x>" stacks on "<x>".

    A branch without an upstream, or tracking its own remote counterpart,
    stacks on the default branch.
    """
    if upstream is None:
        return default
    candidate = upstream.removeprefix("origin/")
    if not candidate or candidate == name:
        return default
    return candidate


class StackManager:
    """Core operations on one repository's branch dependency graph."""

    def __init__(
        self,
        store: GraphStore,
        git: Git,
        repo_root: Path,
        clock: Clock,
        *,
        configured_default_branch: str | None = None,
        worktrees: WorktreeCoordinator | None = None,
    ) -> None:
        self._store = store
        self._git = git
        self._repo_root = repo_root
        self._clock = clock
        self._configured_default_branch = configured_default_branch
        self._worktrees = worktrees

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def load(self) -> BranchGraph:
        return self._store.load()

    def default_branch(self, graph: BranchGraph | None = None) -> str:
        """Configured override, else stored metadata, else detected trunk."""
        if self._configured_default_branch is not None:
            return self._configured_default_branch
        graph = graph if graph is not None else self._store.load()
        if graph.default_branch is not None:
            return graph.default_branch
        return self._git.get_trunk_branch(self._repo_root)

    def get_branch(self, name: str) -> Branch:
        branch = self._store.load().get(name)
        if branch is None:
            raise BranchNotFoundError(name)
        return branch

    def list_branches(self) -> list[Branch]:
        return list(self._store.load().branches)

    def stack_roots(self) -> list[Branch]:
        return self._store.load().roots()

    def children_of(self, name: str) -> list[Branch]:
        return self._store.load().children_of(name)

    def list_stack(self, name: str) -> list[str]:
        """Ancestor chain of `name`, root-to-leaf, ending with `name`.

        The external base the stack sits on (e.g. the default branch) is not
        included: list_stack("b") == ["a", "b"] for a on main, b on a.

        Raises:
            BranchNotFoundError: If `name` is not tracked
            CycleError: If the stored graph is corrupted with a cycle
        """
        graph = self._store.load()
        branch = graph.get(name)
        if branch is None:
            raise BranchNotFoundError(name)

        chain: list[str] = []
        current: Branch | None = branch
        while current is not None:
            if len(chain) > len(graph):
                cycle = find_cycle(graph, name)
                raise CycleError(cycle if cycle is not None else chain)
            chain.append(current.name)
            current = graph.get(current.base_branch)

        chain.reverse()
        return chain

    def list_descendants(self, name: str) -> list[Branch]:
        """All branches transitively stacked on `name`.

        Depth-first, siblings in creation order.

        Raises:
            BranchNotFoundError: If `name` is not tracked
        """
        graph = self._store.load()
        if name not in graph:
            raise BranchNotFoundError(name)
        return _descendants(graph, name)

    def health_warnings(self) -> list[StackWarning]:
        """Active branches stacked on a merged or abandoned base need a rebase."""
        graph = self._store.load()
        default = self.default_branch(graph)
        warnings: list[StackWarning] = []
        for branch in graph.branches:
            if branch.status != BranchStatus.ACTIVE:
                continue
            base = graph.get(branch.base_branch)
            if base is None or base.status == BranchStatus.ACTIVE:
                continue
            target = _nearest_live_base(graph, base, default)
            warnings.append(
                StackWarning(
                    branch=branch.name,
                    message=(
                        f"Base branch '{base.name}' is {base.status.value}; "
                        f"rebase '{branch.name}' onto '{target}'"
                    ),
                    suggested_base=target,
                )
            )
        return warnings

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _mutate[T](self, fn: Callable[[BranchGraph], tuple[BranchGraph, T]]) -> T:
        """Run load -> fn -> save under the store lock.

        `fn` must raise before returning if the mutation is invalid; the graph
        it returns is checked once more for cycles before it is written.
        """
        with self._store.locked():
            graph = self._store.load()
            updated, result = fn(graph)
            cycle = find_any_cycle(updated)
            if cycle is not None:
                raise CycleError(cycle)
            self._store.save(updated)
        return result

    def _resolve_base(self, graph: BranchGraph, base: str, default: str) -> None:
        """Ensure `base` is tracked, the default branch, or known to git.

        Raises:
            ValidationError: If the base cannot be found anywhere
        """
        if base in graph or base == default:
            return
        branches = unwrap(self._git.list_branches(self._repo_root), "list branches") or []
        if base not in branches:
            raise ValidationError(
                f"Base branch '{base}' does not exist (not tracked and not a git branch)"
            )

    def create_branch(
        self,
        name: str,
        base: str | None = None,
        spec_id: str | None = None,
        *,
        worktree: bool = False,
        worktree_path: Path | None = None,
    ) -> Branch:
        """Track a new branch stacked on `base` (default: the default branch).

        The git branch is created through the collaborator unless git already
        has a branch of that name, in which case it is adopted as-is.

        Args:
            name: New branch name
            base: Branch to stack on; None means the repository default branch
            spec_id: Optional feature specification id (NNN-short-name)
            worktree: Also provision an isolated worktree
            worktree_path: Worktree location (implies worktree=True)

        Raises:
            ValidationError: Bad name/spec id or missing base
            DuplicateNameError: Name already tracked
            CycleError: Resulting graph would contain a cycle
            PathConflictError: Requested worktree path is occupied
            CollaboratorTimeoutError, CollaboratorFailureError: git failed

        If the worktree cannot be provisioned the new record is removed again
        before the error propagates. A git branch created for it is kept.
        """
        validate_branch_name(name)
        if spec_id is not None:
            validate_spec_id(spec_id)

        wants_worktree = worktree or worktree_path is not None
        if wants_worktree and self._worktrees is None:
            raise ValidationError("Worktree support is not configured for this repository")

        if wants_worktree and self._worktrees is not None:
            target = (
                worktree_path if worktree_path is not None else self._worktrees.default_path(name)
            )
            self._worktrees.check_target(
                target.expanduser().absolute(), user_specified=worktree_path is not None
            )

        def apply(graph: BranchGraph) -> tuple[BranchGraph, Branch]:
            default = self.default_branch(graph)
            if name == default:
                raise ValidationError(f"'{name}' is the default branch and cannot be tracked")
            if name in graph:
                raise DuplicateNameError(name)

            resolved_base = base if base is not None else default
            if resolved_base == name:
                raise CycleError([name, name])
            self._resolve_base(graph, resolved_base, default)

            git_branches = unwrap(self._git.list_branches(self._repo_root), "list branches") or []
            if name in git_branches:
                logger.info("Adopting existing git branch '%s'", name)
            else:
                unwrap(
                    self._git.create_branch(self._repo_root, name, resolved_base),
                    f"create branch '{name}' from '{resolved_base}'",
                )

            branch = Branch(
                name=name,
                base_branch=resolved_base,
                spec_id=spec_id,
                status=BranchStatus.ACTIVE,
                created_at=self._clock.now(),
            )
            updated = replace(graph.with_branch(branch), default_branch=default)
            return updated, branch

        branch = self._mutate(apply)
        logger.debug("Created branch %s on %s", branch.name, branch.base_branch)

        if wants_worktree and self._worktrees is not None:
            try:
                path = self._worktrees.provision(name, worktree_path)
            except (StackError, OSError):
                logger.warning("Worktree for '%s' could not be created; untracking it", name)
                self._mutate(lambda graph: (graph.without(name), None))
                raise
            branch = replace(branch, worktree_path=path)

        return branch

    def delete_branch(self, name: str, *, cascade: bool = False) -> list[str]:
        """Stop tracking `name`.

        Children block deletion unless `cascade` is set, in which case they are
        reparented onto the deleted branch's own base. Descendants are never
        deleted. A worktree owned by the branch is removed first. The git
        branch itself is left in place.

        Returns:
            Names of the children that were reparented

        Raises:
            BranchNotFoundError: If `name` is not tracked
            HasDependentsError: If it has children and cascade is False
        """

        def apply(graph: BranchGraph) -> tuple[BranchGraph, list[str]]:
            branch = graph.get(name)
            if branch is None:
                raise BranchNotFoundError(name)

            children = graph.children_of(name)
            if children and not cascade:
                raise HasDependentsError(name, [c.name for c in children])

            if branch.worktree_path is not None:
                if self._worktrees is None:
                    raise ValidationError(
                        f"Branch '{name}' owns worktree {branch.worktree_path} "
                        "but worktree support is not configured"
                    )
                self._worktrees.release(branch.worktree_path)

            updated = graph
            for child in children:
                updated = updated.with_replaced(replace(child, base_branch=branch.base_branch))
            return updated.without(name), [c.name for c in children]

        reparented = self._mutate(apply)
        logger.debug("Deleted branch %s (reparented: %s)", name, reparented)
        return reparented

    def reparent_branch(self, name: str, new_base: str) -> Branch:
        """Point `name` at a different base.

        Raises:
            BranchNotFoundError: If `name` is not tracked
            ValidationError: If `new_base` does not exist
            CycleError: If `new_base` is `name` or one of its descendants
        """

        def apply(graph: BranchGraph) -> tuple[BranchGraph, Branch]:
            branch = graph.get(name)
            if branch is None:
                raise BranchNotFoundError(name)
            if new_base == name:
                raise CycleError([name, name])

            descendant_names = [d.name for d in _descendants(graph, name)]
            if new_base in descendant_names:
                trail = self._path_between(graph, name, new_base)
                raise CycleError([*trail, name])

            default = self.default_branch(graph)
            self._resolve_base(graph, new_base, default)

            updated_branch = replace(branch, base_branch=new_base)
            return graph.with_replaced(updated_branch), updated_branch

        return self._mutate(apply)

    def set_status(self, name: str, status: BranchStatus) -> Branch:
        """Transition a branch's lifecycle status.

        Raises:
            BranchNotFoundError: If `name` is not tracked
            InvalidStatusTransitionError: If the transition is not allowed
        """

        def apply(graph: BranchGraph) -> tuple[BranchGraph, Branch]:
            branch = graph.get(name)
            if branch is None:
                raise BranchNotFoundError(name)
            if branch.status == status:
                return graph, branch
            if status not in ALLOWED_TRANSITIONS[branch.status]:
                raise InvalidStatusTransitionError(name, branch.status.value, status.value)

            updated_branch = replace(branch, status=status)
            return graph.with_replaced(updated_branch), updated_branch

        return self._mutate(apply)

    def import_branches(self, pattern: str | None = None) -> ImportResult:
        """Start tracking git branches that already exist.

        Each branch stacks on the base its upstream implies (see
        infer_base_from_upstream). An implied base that is neither a local
        branch nor tracked falls back to the default branch. The default
        branch, tracked names, invalid names and branches whose base would
        close a cycle are skipped. Nothing is created in git.

        Args:
            pattern: Optional git branch glob, e.g. "feature/*"
        """
        listed = (
            unwrap(
                self._git.list_branches_with_upstream(self._repo_root, pattern),
                "list branches with upstreams",
            )
            or []
        )
        local = {name for name, _ in listed}

        def apply(graph: BranchGraph) -> tuple[BranchGraph, ImportResult]:
            default = self.default_branch(graph)
            imported: list[Branch] = []
            skipped: list[SkippedImport] = []
            updated = graph

            for name, upstream in listed:
                if name == default:
                    skipped.append(SkippedImport(name, "default branch"))
                    continue
                if name in updated:
                    skipped.append(SkippedImport(name, "already tracked"))
                    continue
                try:
                    validate_branch_name(name)
                except ValidationError as e:
                    skipped.append(SkippedImport(name, str(e)))
                    continue

                base = infer_base_from_upstream(name, upstream, default)
                if base != default and base not in local and base not in updated:
                    logger.info(
                        "Upstream base '%s' of '%s' is not local; using %s", base, name, default
                    )
                    base = default

                branch = Branch(
                    name=name,
                    base_branch=base,
                    status=BranchStatus.ACTIVE,
                    created_at=self._clock.now(),
                )
                candidate = updated.with_branch(branch)
                if find_cycle(candidate, name) is not None:
                    skipped.append(SkippedImport(name, f"base '{base}' would create a cycle"))
                    continue
                updated = candidate
                imported.append(branch)

            result = ImportResult(imported=tuple(imported), skipped=tuple(skipped))
            return replace(updated, default_branch=default), result

        result = self._mutate(apply)
        logger.debug("Imported %d branches, skipped %d", len(result.imported), len(result.skipped))
        return result

    @staticmethod
    def _path_between(graph: BranchGraph, ancestor: str, descendant: str) -> list[str]:
        """Names from `ancestor` down to `descendant` following base pointers."""
        trail: list[str] = []
        current = graph.get(descendant)
        while current is not None and current.name != ancestor:
            trail.append(current.name)
            current = graph.get(current.base_branch)
        trail.append(ancestor)
        trail.reverse()
        return trail


def _descendants(graph: BranchGraph, name: str) -> list[Branch]:
    result: list[Branch] = []
    visited: set[str] = {name}
    stack = list(reversed(graph.children_of(name)))
    while stack:
        branch = stack.pop()
        if branch.name in visited:
            continue
        visited.add(branch.name)
        result.append(branch)
        stack.extend(reversed(graph.children_of(branch.name)))
    return result


def _nearest_live_base(graph: BranchGraph, branch: Branch, default: str) -> str:
    """Walk down from `branch` to the first active ancestor or external base."""
    current: Branch | None = branch
    seen: set[str] = set()
    while current is not None and current.status != BranchStatus.ACTIVE:
        if current.name in seen:
            return default
        seen.add(current.name)
        parent = graph.get(current.base_branch)
        if parent is None:
            return current.base_branch
        current = parent
    return current.name if current is not None else default
