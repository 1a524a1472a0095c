"""Repository-level configuration stored in `.speck/config.toml`."""

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path

import tomlkit

from speckstack.core.errors import ValidationError
from speckstack.core.git.real import DEFAULT_GIT_TIMEOUT
from speckstack.core.graph_store import SPECK_DIR

CONFIG_FILENAME = "config.toml"
DEFAULT_AGGREGATE_MAX_WORKERS = 8


@dataclass(frozen=True)
class RepoConfig:
    """In-memory representation of `.speck/config.toml`.

    Example config:
      default_branch = "main"
      worktrees_dir = "../my-repo-worktrees"
      git_timeout = 30
      aggregate_max_workers = 8
    """

    default_branch: str | None = None  # None = auto-detect
    worktrees_dir: Path | None = None  # None = <repo>/../<repo-name>-worktrees
    git_timeout: float = DEFAULT_GIT_TIMEOUT
    aggregate_max_workers: int = DEFAULT_AGGREGATE_MAX_WORKERS


CONFIG_KEYS = tuple(f.name for f in fields(RepoConfig))


def config_path_for_repo(repo_root: Path) -> Path:
    return repo_root / SPECK_DIR / CONFIG_FILENAME


def _coerce(key: str, value: object, repo_root: Path) -> object:
    """Convert a raw TOML/CLI value into the RepoConfig field type."""
    if key == "default_branch":
        text = str(value).strip()
        if not text:
            raise ValidationError("default_branch must not be empty")
        return text
    if key == "worktrees_dir":
        path = Path(str(value)).expanduser()
        if not path.is_absolute():
            path = repo_root / path
        return path
    if key == "git_timeout":
        try:
            timeout = float(str(value))
        except ValueError as e:
            raise ValidationError(f"git_timeout must be a number, got {value!r}") from e
        if timeout <= 0:
            raise ValidationError("git_timeout must be positive")
        return timeout
    if key == "aggregate_max_workers":
        try:
            workers = int(str(value))
        except ValueError as e:
            raise ValidationError(
                f"aggregate_max_workers must be an integer, got {value!r}"
            ) from e
        if workers < 1:
            raise ValidationError("aggregate_max_workers must be at least 1")
        return workers
    raise ValidationError(f"Unknown config key '{key}'. Valid keys: {', '.join(CONFIG_KEYS)}")


def load_repo_config(repo_root: Path) -> RepoConfig:
    """Load `.speck/config.toml` if present; otherwise return defaults.

    Unknown keys are ignored.

    Raises:
        ValidationError: If the file is not valid TOML or a value is malformed
    """
    cfg_path = config_path_for_repo(repo_root)
    if not cfg_path.exists():
        return RepoConfig()

    try:
        data = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ValidationError(f"Invalid TOML in {cfg_path}: {e}") from e

    values = {key: _coerce(key, data[key], repo_root) for key in CONFIG_KEYS if key in data}
    return RepoConfig(**values)  # type: ignore[arg-type]


def set_repo_config_value(repo_root: Path, key: str, value: str) -> RepoConfig:
    """Validate and persist one key, preserving existing formatting and comments.

    Uses tomlkit so hand-written comments in config.toml survive edits.
    """
    coerced = _coerce(key, value, repo_root)

    cfg_path = config_path_for_repo(repo_root)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists():
        doc = tomlkit.parse(cfg_path.read_text(encoding="utf-8"))
    else:
        doc = tomlkit.document()

    # String keys keep the text as typed so relative paths stay relative
    doc[key] = value if key in ("default_branch", "worktrees_dir") else coerced
    cfg_path.write_text(tomlkit.dumps(doc), encoding="utf-8")

    return load_repo_config(repo_root)
