"""Cooperative cancellation, deadlines and the exit-wait loop.

media-supervisor runtime module v0.1.0

The wait loop polls instead of blocking on one OS primitive per condition:
every POLL_INTERVAL seconds it checks for process exit, a cancellation
request and an expired deadline, whichever comes first.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

from .process_runner import best_effort

__all__ = [
    "POLL_INTERVAL",
    "CancellationSignal",
    "Deadline",
    "wait_for_exit",
]

logger = logging.getLogger(__name__)

# Seconds between two checks of the cancellation signal and the deadline
POLL_INTERVAL = 0.5


class _Waitable(Protocol):
    def poll(self) -> int | None: ...

    def wait(self, timeout: float | None = None) -> int: ...


class CancellationSignal:
    """One-shot, thread-safe cancellation flag.

    Any thread may call cancel(), any number of times; the wait loop
    observes it on its next poll.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or timeout; return the flag."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"CancellationSignal(cancelled={self.is_cancelled})"


class Deadline:
    """Wall-clock limit measured from construction.

    A timeout of zero or less never expires.
    """

    def __init__(
        self,
        timeout: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout
        self._clock = clock
        self._start = clock()

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def enabled(self) -> bool:
        return self._timeout > 0

    @property
    def elapsed(self) -> float:
        return self._clock() - self._start

    @property
    def remaining(self) -> float | None:
        """Seconds left, or None when there is no limit."""
        if not self.enabled:
            return None
        return max(0.0, self._timeout - self.elapsed)

    @property
    def expired(self) -> bool:
        return self.enabled and self.elapsed > self._timeout


def wait_for_exit(
    process: _Waitable,
    cancel_signal: CancellationSignal,
    deadline: Deadline,
    soft_kill: Callable[[], Any],
    poll_interval: float = POLL_INTERVAL,
) -> bool:
    """Wait for the process while honouring cancellation and the deadline.

    Each iteration:
    1. Cancellation requested and still running -> soft kill, keep polling
       until the process really exits
    2. Deadline expired -> soft kill and report the timeout immediately
    3. Otherwise wait up to poll_interval for a natural exit

    Kill failures are logged and ignored. Once the process has exited, a
    final unbounded wait reaps it.

    Args:
        process: Process handle (poll/wait interface)
        cancel_signal: The run's cancellation signal
        deadline: The run's deadline
        soft_kill: Zero-argument callable terminating the process
        poll_interval: Seconds between checks

    Returns:
        True if the deadline expired, False on exit
    """
    while process.poll() is None:
        if cancel_signal.is_cancelled and process.poll() is None:
            logger.debug("Cancellation requested, stopping process")
            best_effort(soft_kill, description="soft kill after cancellation")
        # Checked even after a cancellation kill: an overrun reports timeout
        if deadline.expired:
            logger.info(f"Process exceeded timeout of {deadline.timeout}s, stopping it")
            best_effort(soft_kill, description="soft kill after timeout")
            return True
        try:
            process.wait(timeout=poll_interval)
        except subprocess.TimeoutExpired:
            pass

    process.wait()
    return False
