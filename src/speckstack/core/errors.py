"""Error taxonomy for stack operations.

Every error raised by the core derives from StackError and carries the exit
code the CLI should terminate with:

- User errors (exit 1): the request itself is invalid (bad name, missing base,
  cyclic request, dependents blocking deletion). Never retried.
- System errors (exit 2): the environment is broken (corrupt store, collaborator
  timeout or failure, filesystem problems). Surfaced verbatim, never recovered
  silently.
"""

from pathlib import Path

EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2


class StackError(Exception):
    """Base class for all stack errors."""

    exit_code: int = EXIT_USER_ERROR


class UserError(StackError):
    """Invalid request from the user."""

    exit_code = EXIT_USER_ERROR


class StackSystemError(StackError):
    """Failure of the environment rather than the request."""

    exit_code = EXIT_SYSTEM_ERROR


class ValidationError(UserError):
    """Bad name format, missing base, or other malformed input."""


class BranchNotFoundError(ValidationError):
    """The named branch is not tracked in this repository."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Branch '{name}' is not tracked in this repository")
        self.name = name


class InvalidStatusTransitionError(ValidationError):
    """Requested status change is not an allowed transition."""

    def __init__(self, name: str, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot change status of '{name}' from '{current}' to '{requested}'"
        )
        self.name = name
        self.current = current
        self.requested = requested


class NotInRepositoryError(ValidationError):
    """Invocation happened outside of any git repository."""

    def __init__(self, start_path: Path) -> None:
        super().__init__(f"Not inside a git repository: {start_path}")
        self.start_path = start_path


class DuplicateNameError(UserError):
    """A branch with this name is already tracked."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Branch '{name}' is already tracked in this repository")
        self.name = name


class HasDependentsError(UserError):
    """Deletion refused because other branches are stacked on the target."""

    def __init__(self, name: str, dependents: list[str]) -> None:
        listing = ", ".join(dependents)
        super().__init__(
            f"Branch '{name}' has dependent branches: {listing}\n"
            "Use --cascade to reparent them onto its base"
        )
        self.name = name
        self.dependents = dependents


class CycleError(UserError):
    """The requested edge would make a branch its own ancestor."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(f"Circular dependency detected: {' -> '.join(cycle)}")
        self.cycle = cycle


class CorruptStoreError(StackSystemError):
    """The branch store exists but cannot be parsed."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(f"Corrupt branch store at {path}: {detail}")
        self.path = path
        self.detail = detail


class UnsupportedSchemaVersionError(StackSystemError):
    """The branch store was written with a schema version we do not understand."""

    def __init__(self, path: Path, version: object, supported: int) -> None:
        super().__init__(
            f"Unsupported branch store schema version {version!r} at {path} "
            f"(supported: {supported})"
        )
        self.path = path
        self.version = version
        self.supported = supported


class PathConflictError(StackError):
    """Worktree target path already exists and is not empty.

    A conflict on a path the user typed is their error; a conflict on a path we
    generated means the environment is in an unexpected state.
    """

    def __init__(self, path: Path, *, user_specified: bool) -> None:
        super().__init__(f"Worktree path already exists and is not empty: {path}")
        self.path = path
        self.user_specified = user_specified
        self.exit_code = EXIT_USER_ERROR if user_specified else EXIT_SYSTEM_ERROR


class CollaboratorTimeoutError(StackSystemError):
    """A git collaborator call exceeded its timeout."""


class CollaboratorFailureError(StackSystemError):
    """A git collaborator call failed."""
