"""Tests for the worktree command group."""

from pathlib import Path

from click.testing import CliRunner

from speckstack.cli.cli import cli
from tests.test_utils.env_helpers import simulated_repo_env


def test_worktree_add_and_remove(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        ctx = env.build_context()
        runner.invoke(cli, ["create", "feat"], obj=ctx)

        added = runner.invoke(cli, ["worktree", "add", "feat"], obj=ctx)

        assert added.exit_code == 0, added.output
        path = Path(added.stdout.strip())
        assert path.is_dir()
        assert env.store.load().get("feat").worktree_path == path  # type: ignore[union-attr]

        removed = runner.invoke(cli, ["worktree", "remove", "feat"], obj=ctx)

        assert removed.exit_code == 0, removed.output
        assert not path.exists()
        assert env.store.load().get("feat").worktree_path is None  # type: ignore[union-attr]


def test_worktree_add_custom_path(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        ctx = env.build_context()
        runner.invoke(cli, ["create", "feat"], obj=ctx)
        target = tmp_path / "custom"

        result = runner.invoke(cli, ["worktree", "add", "feat", "--path", str(target)], obj=ctx)

        assert result.exit_code == 0, result.output
        assert target.is_dir()


def test_worktree_add_relative_path_resolves_from_cwd(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        ctx = env.build_context()
        runner.invoke(cli, ["create", "feat"], obj=ctx)

        result = runner.invoke(cli, ["worktree", "add", "feat", "--path", "../rel"], obj=ctx)

        assert result.exit_code == 0, result.output
        assert (tmp_path / "rel").is_dir()


def test_worktree_uses_configured_directory(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        ctx = env.build_context()
        runner.invoke(cli, ["config", "set", "worktrees_dir", "../trees"], obj=ctx)
        runner.invoke(cli, ["create", "user/feat"], obj=ctx)

        result = runner.invoke(cli, ["worktree", "add", "user/feat"], obj=ctx)

        assert result.exit_code == 0, result.output
        assert Path(result.stdout.strip()).resolve() == tmp_path / "trees" / "user-feat"


def test_worktree_remove_without_worktree_is_noop(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        ctx = env.build_context()
        runner.invoke(cli, ["create", "feat"], obj=ctx)

        result = runner.invoke(cli, ["worktree", "remove", "feat"], obj=ctx)

        assert result.exit_code == 0
        assert "has no worktree" in result.output


def test_worktree_add_untracked_exits_1(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        result = runner.invoke(cli, ["worktree", "add", "ghost"], obj=env.build_context())

        assert result.exit_code == 1
        assert "not tracked" in result.output
