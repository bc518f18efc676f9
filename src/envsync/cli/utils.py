"""CLI utility functions and error handling.

Shared helpers for the envsync CLI:
- Exit code constants
- Output helpers keeping progress on stderr and results on stdout
- Signal handling that turns SIGINT/SIGTERM into a cancel event

Example:
    from envsync.cli.utils import error_exit, ExitCode

    if not path.exists():
        error_exit("File not found", exit_code=ExitCode.CONFIGURATION_ERROR, path=str(path))
"""

from __future__ import annotations

import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum
from typing import TYPE_CHECKING, Any

import click

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Exit codes for envsync commands.

    Mirrors the ``exit_code`` attributes of ``envsync.errors`` so CI
    pipelines can tell failure kinds apart.
    """

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    CONFIGURATION_ERROR = 2
    """Invalid configuration or usage."""

    PROVISIONING_ERROR = 3
    """Cluster or manifests could not be resolved or applied."""

    READINESS_ERROR = 4
    """A workload timed out or its rollout failed."""

    DASHBOARD_ERROR = 5
    """At least one dashboard failed to reconcile."""

    CONCURRENT_MODIFICATION = 6
    """A dashboard changed concurrently; re-running may succeed."""

    CANCELLED = 130
    """Interrupted by signal."""


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Example:
        error("Rollout failed", workload="frontend")
        # Output: Error: Rollout failed (workload=frontend)
    """
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        full_message = f"Error: {message} ({context_str})"
    else:
        full_message = f"Error: {message}"

    click.echo(full_message, err=True)


def error_exit(
    message: str,
    exit_code: ExitCode | int = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with a code.

    Raises:
        SystemExit: Always exits with the specified code.
    """
    error(message, **context)
    sys.exit(int(exit_code))


def warn(message: str, **context: str | int | bool | None) -> None:
    """Print a warning message to stderr."""
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        full_message = f"Warning: {message} ({context_str})"
    else:
        full_message = f"Warning: {message}"

    click.echo(full_message, err=True)


def success(message: str) -> None:
    """Print a success message to stdout."""
    click.echo(message)


def info(message: str) -> None:
    """Print an informational message to stderr.

    Used for progress updates that should not be captured by stdout
    redirection.
    """
    click.echo(message, err=True)


@contextmanager
def cancel_on_signals(event: threading.Event) -> Iterator[threading.Event]:
    """Set ``event`` on SIGINT/SIGTERM for the duration of the block.

    Previous handlers are restored on exit. Outside the main thread signal
    handlers cannot be installed and the event is yielded unchanged.
    """
    if threading.current_thread() is not threading.main_thread():
        yield event
        return

    def _handler(signum: int, frame: Any) -> None:  # noqa: ARG001
        event.set()

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield event
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


__all__ = [
    "ExitCode",
    "cancel_on_signals",
    "error",
    "error_exit",
    "info",
    "success",
    "warn",
]
