"""Interface manager collaborator.

media-supervisor supervisor v0.1.0

The supervisor hands itself to an interface manager when a job should be
shown (DisplayMode.INTERFACE) or when a failed job should be reported
(DisplayMode.ERROR_ONLY). The manager reads whatever it needs through the
supervisor's read-only accessors.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .supervisor import ProcessSupervisor

__all__ = ["InterfaceManager", "LoggingInterfaceManager"]

logger = logging.getLogger(__name__)


@runtime_checkable
class InterfaceManager(Protocol):
    """Displays running jobs and failed jobs."""

    def display(self, supervisor: ProcessSupervisor) -> None:
        """Called right before the job is spawned."""
        ...

    def display_error(self, supervisor: ProcessSupervisor) -> None:
        """Called after a job ended with ERROR or TIMEOUT."""
        ...


class LoggingInterfaceManager:
    """Interface manager writing to the log instead of a window.

    Args:
        tail_lines: Number of trailing output lines included in error reports
        log: Logger to write to (defaults to this module's logger)
    """

    def __init__(self, tail_lines: int = 20, log: logging.Logger | None = None) -> None:
        self.tail_lines = tail_lines
        self._log = log or logger

    def display(self, supervisor: ProcessSupervisor) -> None:
        self._log.info(f"Running: {supervisor.command_with_args}")

    def display_error(self, supervisor: ProcessSupervisor) -> None:
        lines = supervisor.output.splitlines()
        tail = lines[-self.tail_lines:] if self.tail_lines > 0 else []
        status = supervisor.last_completion_status
        self._log.error(
            f"Job failed ({status.value if status else 'unknown'}): "
            f"{supervisor.command_with_args}"
        )
        for line in tail:
            self._log.error(f"  {line}")
