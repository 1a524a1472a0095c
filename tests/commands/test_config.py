"""Tests for the config command group."""

from pathlib import Path

from click.testing import CliRunner

from speckstack.cli.cli import cli
from speckstack.core.git.fake import FakeGit
from tests.test_utils.env_helpers import simulated_repo_env


def test_config_list_shows_defaults(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        result = runner.invoke(cli, ["config", "list"], obj=env.build_context())

        assert result.exit_code == 0, result.output
        assert "default_branch=(auto)" in result.stdout
        assert "git_timeout=30.0" in result.stdout
        assert "aggregate_max_workers=8" in result.stdout


def test_config_set_then_get(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        ctx = env.build_context()

        set_result = runner.invoke(cli, ["config", "set", "aggregate_max_workers", "3"], obj=ctx)
        get_result = runner.invoke(cli, ["config", "get", "aggregate_max_workers"], obj=ctx)

        assert set_result.exit_code == 0, set_result.output
        assert get_result.stdout.strip() == "3"


def test_config_get_unset_key(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        result = runner.invoke(cli, ["config", "get", "default_branch"], obj=env.build_context())

        assert result.exit_code == 0
        assert result.stdout == ""
        assert "auto-detect" in result.output


def test_config_get_unknown_key_exits_1(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        result = runner.invoke(cli, ["config", "get", "colour"], obj=env.build_context())

        assert result.exit_code == 1
        assert "Invalid key" in result.output


def test_config_set_bad_value_exits_1(tmp_path: Path) -> None:
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        result = runner.invoke(
            cli, ["config", "set", "git_timeout", "forever"], obj=env.build_context()
        )

        assert result.exit_code == 1
        assert "git_timeout must be a number" in result.output


def test_configured_default_branch_drives_create(tmp_path: Path) -> None:
    """default_branch in config overrides trunk detection for new stacks."""
    runner = CliRunner()
    with simulated_repo_env(tmp_path) as env:
        ctx = env.build_context(git=FakeGit(branches=["main", "develop"]))
        runner.invoke(cli, ["config", "set", "default_branch", "develop"], obj=ctx)

        result = runner.invoke(cli, ["create", "feat"], obj=ctx)

        assert result.exit_code == 0, result.output
        assert env.store.load().get("feat").base_branch == "develop"  # type: ignore[union-attr]
