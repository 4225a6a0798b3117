"""Supervisor type definitions.

media-supervisor supervisor v0.1.0

Defines completion status, output channel selector, encoder dialect,
display mode, process priority and per-run options.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

__all__ = [
    "CompletionStatus",
    "ProcessOutput",
    "EncoderApp",
    "DisplayMode",
    "ProcessPriority",
    "RunOptions",
]


class CompletionStatus(str, Enum):
    """Outcome of one run.

    Precedence when several conditions hold: TIMEOUT > CANCELLED > exit code.
    """

    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @property
    def is_failure(self) -> bool:
        """Whether the error display should be triggered for this status."""
        return self in (CompletionStatus.ERROR, CompletionStatus.TIMEOUT)


class ProcessOutput(str, Enum):
    """Output channel redirected and classified for a run."""

    STANDARD = "stdout"
    ERROR = "stderr"


class EncoderApp(str, Enum):
    """Output dialect of the wrapped tool.

    - FFMPEG: stream summary headers and ``frame=`` progress lines
    - X264: ``frames`` header followed by fixed-width progress lines
    - OTHER: no classification; metadata parsed once at end of output
    """

    FFMPEG = "ffmpeg"
    X264 = "x264"
    OTHER = "other"


class DisplayMode(str, Enum):
    """How a run is presented.

    - NATIVE: output goes straight to the console, nothing is redirected
    - INTERFACE: hidden; the interface manager displays the running job
    - ERROR_ONLY: hidden; the interface manager displays failed jobs only
    - NONE: hidden; no interface manager calls
    """

    NATIVE = "native"
    INTERFACE = "interface"
    ERROR_ONLY = "error_only"
    NONE = "none"


class ProcessPriority(str, Enum):
    """Scheduling priority for the wrapped process."""

    IDLE = "idle"
    BELOW_NORMAL = "below_normal"
    NORMAL = "normal"
    ABOVE_NORMAL = "above_normal"
    HIGH = "high"
    REALTIME = "realtime"

    @property
    def nice(self) -> int:
        """POSIX nice value."""
        return _NICE_VALUES[self]

    @property
    def windows_flag(self) -> int:
        """Windows priority class creation flag (0 off Windows)."""
        return getattr(subprocess, _WINDOWS_CLASSES[self], 0)


_NICE_VALUES: dict[ProcessPriority, int] = {
    ProcessPriority.IDLE: 19,
    ProcessPriority.BELOW_NORMAL: 10,
    ProcessPriority.NORMAL: 0,
    ProcessPriority.ABOVE_NORMAL: -5,
    ProcessPriority.HIGH: -10,
    ProcessPriority.REALTIME: -20,
}

_WINDOWS_CLASSES: dict[ProcessPriority, str] = {
    ProcessPriority.IDLE: "IDLE_PRIORITY_CLASS",
    ProcessPriority.BELOW_NORMAL: "BELOW_NORMAL_PRIORITY_CLASS",
    ProcessPriority.NORMAL: "NORMAL_PRIORITY_CLASS",
    ProcessPriority.ABOVE_NORMAL: "ABOVE_NORMAL_PRIORITY_CLASS",
    ProcessPriority.HIGH: "HIGH_PRIORITY_CLASS",
    ProcessPriority.REALTIME: "REALTIME_PRIORITY_CLASS",
}


@dataclass(frozen=True)
class RunOptions:
    """Options controlling one run.

    Attributes:
        display_mode: How the run is presented
        priority: Scheduling priority applied after spawn
        timeout: Seconds before the process is stopped (0 = no timeout)
        frame_count: Known frame count of the input (0 = estimate it)
    """

    display_mode: DisplayMode = DisplayMode.NONE
    priority: ProcessPriority = ProcessPriority.NORMAL
    timeout: float = 0.0
    frame_count: int = 0

    def __post_init__(self) -> None:
        """Accept strings for enums and a timedelta for timeout."""
        if isinstance(self.display_mode, str):
            object.__setattr__(self, "display_mode", DisplayMode(self.display_mode))
        if isinstance(self.priority, str):
            object.__setattr__(self, "priority", ProcessPriority(self.priority))
        if isinstance(self.timeout, timedelta):
            object.__setattr__(self, "timeout", self.timeout.total_seconds())
        if self.timeout < 0:
            raise ValueError(f"timeout must not be negative: {self.timeout}")
        if self.frame_count < 0:
            raise ValueError(f"frame_count must not be negative: {self.frame_count}")

    @property
    def is_hidden(self) -> bool:
        """Whether output is redirected instead of shown in a console."""
        return self.display_mode != DisplayMode.NATIVE
