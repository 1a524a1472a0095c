"""Tests for the lazily loading root command group."""

import click
import pytest
from click.testing import CliRunner

from speckstack.cli.cli import LAZY_SUBCOMMANDS, cli
from speckstack.cli.lazy_group import LazyGroup


def test_every_lazy_subcommand_resolves() -> None:
    """Each import string points at a click command."""
    ctx = click.Context(cli)
    for name in LAZY_SUBCOMMANDS:
        assert isinstance(cli.get_command(ctx, name), click.Command)


def test_help_lists_sections() -> None:
    result = CliRunner().invoke(cli, ["--help"], obj=object())

    assert result.exit_code == 0
    assert "Stack Commands" in result.output
    assert "Command Groups" in result.output
    assert "create" in result.output
    assert "worktree" in result.output


def test_bad_import_string_fails_loudly() -> None:
    @click.group(cls=LazyGroup, lazy_subcommands={"oops": "speckstack.cli.output:user_output"})
    def group() -> None:
        pass

    with pytest.raises(ValueError, match="did not resolve"):
        group.get_command(click.Context(group), "oops")


def test_unknown_command_is_usage_error() -> None:
    result = CliRunner().invoke(cli, ["frobnicate"], obj=object())

    assert result.exit_code == 2
    assert "No such command" in result.output
