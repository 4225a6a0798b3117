"""Supervisor exception classes.

media-supervisor supervisor v0.1.0

Only misuse and configuration problems are raised. Every outcome of the
wrapped process itself is reported through CompletionStatus.
"""

from __future__ import annotations

__all__ = [
    "SupervisorError",
    "ExecutableNotFoundError",
    "SupervisorBusyError",
]


class SupervisorError(Exception):
    """Base exception for the supervisor."""
    pass


class ExecutableNotFoundError(SupervisorError, FileNotFoundError):
    """The program to run does not exist.

    Attributes:
        path: The path (or name) that could not be resolved
        setting: Configuration field the path came from, if any
    """

    def __init__(self, path: str, setting: str = "") -> None:
        self.path = path
        self.setting = setting
        source = f" specified by {setting}" if setting else ""
        super().__init__(f'File "{path}"{source} is not found.')


class SupervisorBusyError(SupervisorError, RuntimeError):
    """A run is already in progress on this supervisor instance."""

    def __init__(self) -> None:
        super().__init__(
            "This supervisor is busy. Run concurrent commands with separate instances."
        )
