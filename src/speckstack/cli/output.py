"""Output utilities for CLI commands with clear intent.

Human-facing messages go to stderr so stdout stays clean for data that
scripts consume.
"""

from typing import Any

import click


def user_output(message: Any = "", nl: bool = True) -> None:
    """Write a message for the person at the terminal (stderr)."""
    click.echo(message, nl=nl, err=True)


def machine_output(message: Any = "", nl: bool = True) -> None:
    """Write data meant for scripts and pipes (stdout)."""
    click.echo(message, nl=nl)
