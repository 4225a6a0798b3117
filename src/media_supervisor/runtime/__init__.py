"""Runtime module for subprocess management.

This module provides isolated process launch, line-based output reading,
reliable termination, and the polling exit-wait loop with cooperative
cancellation and deadlines.
"""

from __future__ import annotations

from .cancellation import POLL_INTERVAL, CancellationSignal, Deadline, wait_for_exit
from .process_runner import (
    IS_WINDOWS,
    LineReader,
    ProcessSpec,
    best_effort,
    launch,
    set_priority,
    soft_kill,
)

__all__ = [
    "IS_WINDOWS",
    "POLL_INTERVAL",
    "CancellationSignal",
    "Deadline",
    "LineReader",
    "ProcessSpec",
    "best_effort",
    "launch",
    "set_priority",
    "soft_kill",
    "wait_for_exit",
]
