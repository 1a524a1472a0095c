"""Repository discovery functionality.

Locates the repository containing a path and classifies its role in a
multi-repo topology:

- A child repository carries `.speck/root`, a symlink (or a reference file
  holding a path) to the shared specification root.
- The root repository carries `.speck-link-<name>` reverse links to its
  children.
- Anything else is standalone.
"""

import logging
import os
from pathlib import Path

from speckstack.core.branch_types import RepoRecord, RepoRole
from speckstack.core.errors import NotInRepositoryError, ValidationError
from speckstack.core.git.abc import Git
from speckstack.core.graph_store import SPECK_DIR

logger = logging.getLogger(__name__)

ROOT_POINTER = "root"
LINK_PREFIX = ".speck-link-"
SIBLING_SCAN_DEPTH = 2


def _pointer_target(pointer: Path) -> Path | None:
    """Resolve a symlink or reference-file pointer to the directory it names."""
    if pointer.is_symlink():
        return (pointer.parent / os.readlink(pointer)).resolve()
    if pointer.is_file():
        text = pointer.read_text(encoding="utf-8").strip()
        if not text:
            return None
        return (pointer.parent / Path(text).expanduser()).resolve()
    return None


def _is_spec_root(path: Path) -> bool:
    return path.is_dir() and ((path / "specs").is_dir() or (path / SPECK_DIR).is_dir())


class RepoDiscovery:
    """Discovers repositories and their multi-repo role from the filesystem."""

    def __init__(self, git: Git) -> None:
        self._git = git

    def find_repo_root(self, start: Path) -> Path | None:
        """Walk up from `start` to the main repository root.

        Linked worktrees resolve to the repository that owns them.
        """
        if not self._git.path_exists(start):
            return None

        cur = start.resolve()
        git_common_dir = self._git.get_git_common_dir(cur)
        if git_common_dir is not None:
            return git_common_dir.parent.resolve()

        for parent in [cur, *cur.parents]:
            git_path = parent / ".git"
            if self._git.path_exists(git_path) and self._git.is_dir(git_path):
                return parent
        return None

    def resolve_context(self, start_path: Path) -> RepoRecord:
        """Describe the repository containing `start_path`.

        Raises:
            NotInRepositoryError: If `start_path` is not inside a git repository
        """
        repo_root = self.find_repo_root(start_path)
        if repo_root is None:
            raise NotInRepositoryError(start_path)

        root_path = self._read_root_pointer(repo_root)
        if root_path is not None and root_path != repo_root:
            return RepoRecord(
                path=repo_root,
                display_name=repo_root.name,
                role=RepoRole.MULTI_REPO_CHILD,
                root_path=root_path,
            )

        if any(repo_root.glob(f"{LINK_PREFIX}*")):
            return RepoRecord(
                path=repo_root, display_name=repo_root.name, role=RepoRole.MULTI_REPO_ROOT
            )

        return RepoRecord(path=repo_root, display_name=repo_root.name, role=RepoRole.STANDALONE)

    def _read_root_pointer(self, repo_root: Path) -> Path | None:
        pointer = repo_root / SPECK_DIR / ROOT_POINTER
        if not pointer.is_symlink() and not pointer.exists():
            return None

        try:
            target = _pointer_target(pointer)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read %s (%s); treating repository as standalone", pointer, e)
            return None

        if target is None or not _is_spec_root(target):
            logger.warning(
                "%s does not point at a specification root (%s); treating repository as standalone",
                pointer,
                target,
            )
            return None
        return target

    def root_record(self, record: RepoRecord) -> RepoRecord:
        """The multi-repo root for a child record, the record itself otherwise."""
        if record.role != RepoRole.MULTI_REPO_CHILD or record.root_path is None:
            return record
        return RepoRecord(
            path=record.root_path,
            display_name=record.root_path.name,
            role=RepoRole.MULTI_REPO_ROOT,
        )

    def list_sibling_repos(self, record: RepoRecord) -> list[RepoRecord]:
        """Enumerate the child repositories of the topology `record` belongs to.

        Sources, merged and de-duplicated by resolved path:
        - `.speck-link-<name>` entries in the root (display name `<name>`)
        - repositories up to two levels below the root whose `.speck/root`
          resolves back to it (display name is the relative path)

        Returns:
            Sibling records sorted by display name; empty for a standalone repo
        """
        root = self.root_record(record)
        if root.role == RepoRole.STANDALONE:
            return []

        root_path = root.path.resolve()
        found: dict[Path, RepoRecord] = {}

        for entry in sorted(root_path.glob(f"{LINK_PREFIX}*")):
            name = entry.name[len(LINK_PREFIX) :]
            try:
                target = _pointer_target(entry)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable link %s: %s", entry, e)
                continue
            if target is None or not target.is_dir():
                logger.warning("Skipping dangling link %s", entry)
                continue
            found.setdefault(
                target,
                RepoRecord(
                    path=target,
                    display_name=name,
                    role=RepoRole.MULTI_REPO_CHILD,
                    root_path=root_path,
                ),
            )

        for candidate in self._scan_children(root_path):
            resolved = candidate.resolve()
            if resolved in found or resolved == root_path:
                continue
            if self._read_root_pointer(resolved) != root_path:
                continue
            found[resolved] = RepoRecord(
                path=resolved,
                display_name=str(candidate.relative_to(root_path)),
                role=RepoRole.MULTI_REPO_CHILD,
                root_path=root_path,
            )

        return sorted(found.values(), key=lambda r: r.display_name)

    def _scan_children(self, root_path: Path) -> list[Path]:
        candidates: list[Path] = []
        level = [root_path]
        for _ in range(SIBLING_SCAN_DEPTH):
            next_level: list[Path] = []
            for directory in level:
                try:
                    entries = sorted(directory.iterdir())
                except OSError:
                    continue
                for entry in entries:
                    if entry.is_symlink() or not entry.is_dir() or entry.name.startswith("."):
                        continue
                    pointer = entry / SPECK_DIR / ROOT_POINTER
                    if pointer.is_symlink() or pointer.exists():
                        candidates.append(entry)
                    next_level.append(entry)
            level = next_level
        return candidates

    def link(self, child_path: Path, root_path: Path, name: str | None = None) -> Path:
        """Link a child repository to a specification root.

        Creates `<child>/.speck/root` as a relative symlink to the root and
        `<root>/.speck-link-<name>` pointing back at the child. Idempotent.

        Returns:
            The resolved root path

        Raises:
            ValidationError: If the root is missing or the child already has a
                non-symlink `.speck/root`
        """
        child = child_path.resolve()
        root = root_path.expanduser()
        if not root.is_absolute():
            root = child / root
        root = root.resolve()

        if not root.is_dir():
            raise ValidationError(f"Target does not exist or is not a directory: {root}")
        if not _is_spec_root(root):
            raise ValidationError(f"{root} is not a specification root (no specs/ or .speck/)")
        if root == child:
            raise ValidationError("A repository cannot be linked to itself")

        pointer = child / SPECK_DIR / ROOT_POINTER
        pointer.parent.mkdir(parents=True, exist_ok=True)
        relative = Path(os.path.relpath(root, pointer.parent))

        if pointer.is_symlink():
            if pointer.resolve() == root:
                logger.debug("%s already points at %s", pointer, root)
            else:
                logger.info("Re-pointing %s to %s", pointer, root)
                pointer.unlink()
                pointer.symlink_to(relative)
        elif pointer.exists():
            raise ValidationError(
                f"{pointer} exists but is not a symlink; move it aside and link again"
            )
        else:
            pointer.symlink_to(relative)

        link_name = name if name is not None else child.name
        reverse = root / f"{LINK_PREFIX}{link_name}"
        if reverse.is_symlink() and reverse.resolve() != child:
            reverse.unlink()
        if not reverse.is_symlink():
            if reverse.exists():
                raise ValidationError(f"{reverse} exists but is not a symlink")
            reverse.symlink_to(Path(os.path.relpath(child, root)))

        return root
