"""Subprocess execution with rich error context and a bounded timeout."""

import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Any


class SubprocessTimeoutError(RuntimeError):
    """Raised when a subprocess exceeds its timeout."""

    def __init__(self, message: str, timeout: float) -> None:
        super().__init__(message)
        self.timeout = timeout


def _format_command(cmd: Sequence[str]) -> str:
    return " ".join(str(arg) for arg in cmd)


def run_subprocess_with_context(
    cmd: Sequence[str],
    operation_context: str,
    cwd: Path | None = None,
    timeout: float | None = None,
    check: bool = True,
    **kwargs: Any,
) -> subprocess.CompletedProcess[str]:
    """Execute subprocess with enriched error reporting.

    Wraps subprocess.run() to re-raise failures as RuntimeError carrying the
    operation context, command and captured output.

    Args:
        cmd: Command and arguments to execute
        operation_context: Human-readable description of operation
        cwd: Working directory for command execution
        timeout: Seconds before the process is killed (None = no limit)
        check: Whether to raise on non-zero exit (default: True)
        **kwargs: Additional arguments passed to subprocess.run()

    Returns:
        CompletedProcess instance from subprocess.run()

    Raises:
        SubprocessTimeoutError: If the command does not finish within timeout
        RuntimeError: If command fails (with check=True) or the binary is missing
    """
    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=check,
            timeout=timeout,
            **kwargs,
        )

    except subprocess.TimeoutExpired as e:
        error_msg = f"Timed out after {timeout}s while trying to {operation_context}"
        error_msg += f"\nCommand: {_format_command(cmd)}"
        raise SubprocessTimeoutError(error_msg, timeout if timeout is not None else 0.0) from e

    except subprocess.CalledProcessError as e:
        error_msg = f"Failed to {operation_context}"
        error_msg += f"\nCommand: {_format_command(cmd)}"
        error_msg += f"\nExit code: {e.returncode}"

        if e.stdout and e.stdout.strip():
            error_msg += f"\nstdout: {e.stdout.strip()}"
        if e.stderr and e.stderr.strip():
            error_msg += f"\nstderr: {e.stderr.strip()}"

        raise RuntimeError(error_msg) from e

    except FileNotFoundError as e:
        error_msg = f"Command not found while trying to {operation_context}: {cmd[0]}"
        error_msg += f"\nFull command: {_format_command(cmd)}"
        raise RuntimeError(error_msg) from e
