"""Translate stack errors into styled messages and process exit codes."""

import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

import click

from speckstack.cli.json_output import emit_json_error
from speckstack.cli.output import user_output
from speckstack.core.errors import EXIT_SYSTEM_ERROR, StackError

logger = logging.getLogger(__name__)


def fail(message: str, exit_code: int = 1) -> None:
    """Print a red "Error:" message and exit.

    Raises:
        SystemExit: Always
    """
    user_output(click.style("Error: ", fg="red") + message)
    raise SystemExit(exit_code)


def stack_error_boundary(func: Callable) -> Callable:
    """Decorator mapping StackError and OSError to exit codes.

    StackError exits with its own exit_code (1 user, 2 system); an unexpected
    OSError is a system error (2). When the command was invoked with
    `--format json` the error is emitted as an ErrorResponse on stdout
    instead of styled text on stderr.

    Example:
        @click.command()
        @click.option("--format", type=click.Choice(["text", "json"]), default="text")
        @stack_error_boundary
        def my_command(format: str) -> None:
            ...
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except StackError as e:
            exit_code = e.exit_code
            error: Exception = e
        except OSError as e:
            logger.debug("Unexpected filesystem error", exc_info=True)
            exit_code = EXIT_SYSTEM_ERROR
            error = e

        if kwargs.get("format") == "json":
            emit_json_error(str(error), type(error).__name__, exit_code=exit_code)
        fail(str(error), exit_code)

    return wrapper
