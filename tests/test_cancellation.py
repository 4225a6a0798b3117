"""Cancellation signal, deadline and exit-wait loop tests.

The wait loop is exercised against an in-memory process double so every
branch is deterministic.
"""

from __future__ import annotations

import subprocess
import threading

import pytest

from media_supervisor.runtime import POLL_INTERVAL, CancellationSignal, Deadline, wait_for_exit


class FakeProcess:
    """Process double exiting after a number of polls, or when killed."""

    def __init__(self, exit_after_waits: int | None = None, returncode: int = 0) -> None:
        self.exit_after_waits = exit_after_waits
        self.exit_code = returncode
        self.returncode: int | None = None
        self.waits: list[float | None] = []

    def poll(self) -> int | None:
        return self.returncode

    def wait(self, timeout: float | None = None) -> int:
        self.waits.append(timeout)
        if self.returncode is None and self.exit_after_waits is not None:
            if len(self.waits) >= self.exit_after_waits:
                self.returncode = self.exit_code
        if self.returncode is None:
            if timeout is None:
                raise AssertionError("unbounded wait on a running process")
            raise subprocess.TimeoutExpired("fake", timeout)
        return self.returncode

    def die(self, code: int = -15) -> None:
        self.returncode = code


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


# ============================================================================
# CancellationSignal
# ============================================================================


class TestCancellationSignal:
    def test_initially_clear(self):
        assert CancellationSignal().is_cancelled is False

    def test_cancel_is_idempotent(self):
        signal = CancellationSignal()
        signal.cancel()
        signal.cancel()
        assert signal.is_cancelled is True

    def test_cancel_from_other_thread(self):
        signal = CancellationSignal()
        thread = threading.Thread(target=signal.cancel)
        thread.start()
        assert signal.wait(timeout=5) is True
        thread.join()

    def test_wait_times_out_when_not_cancelled(self):
        assert CancellationSignal().wait(timeout=0.01) is False


# ============================================================================
# Deadline
# ============================================================================


class TestDeadline:
    def test_zero_never_expires(self):
        clock = FakeClock()
        deadline = Deadline(0, clock=clock)
        clock.now += 1e9
        assert deadline.enabled is False
        assert deadline.expired is False
        assert deadline.remaining is None

    def test_negative_never_expires(self):
        clock = FakeClock()
        deadline = Deadline(-5, clock=clock)
        clock.now += 100
        assert deadline.expired is False

    def test_expires_after_timeout(self):
        clock = FakeClock()
        deadline = Deadline(10, clock=clock)
        clock.now += 5
        assert deadline.expired is False
        assert deadline.remaining == pytest.approx(5)
        clock.now += 6
        assert deadline.expired is True
        assert deadline.remaining == 0.0


# ============================================================================
# wait_for_exit
# ============================================================================


class TestWaitForExit:
    def test_natural_exit(self):
        process = FakeProcess(exit_after_waits=3)
        kills = []

        timed_out = wait_for_exit(
            process, CancellationSignal(), Deadline(0), lambda: kills.append(1), poll_interval=0.01
        )

        assert timed_out is False
        assert kills == []
        # Bounded polls, then the final unbounded reap
        assert process.waits[:3] == [0.01, 0.01, 0.01]
        assert process.waits[-1] is None

    def test_default_poll_interval(self):
        process = FakeProcess(exit_after_waits=1)
        wait_for_exit(process, CancellationSignal(), Deadline(0), lambda: None)
        assert process.waits[0] == POLL_INTERVAL

    def test_cancel_kills_and_waits_for_exit(self):
        process = FakeProcess()
        signal = CancellationSignal()
        signal.cancel()

        timed_out = wait_for_exit(process, signal, Deadline(0), lambda: process.die(), poll_interval=0.01)

        assert timed_out is False
        assert process.returncode == -15

    def test_failed_kill_keeps_polling(self):
        process = FakeProcess(exit_after_waits=4)
        signal = CancellationSignal()
        signal.cancel()
        attempts = []

        def failing_kill():
            attempts.append(1)
            raise OSError("permission denied")

        timed_out = wait_for_exit(process, signal, Deadline(0), failing_kill, poll_interval=0.01)

        assert timed_out is False
        assert len(attempts) >= 3
        assert process.returncode == 0

    def test_deadline_kills_and_reports_timeout(self):
        clock = FakeClock()
        deadline = Deadline(1, clock=clock)
        process = FakeProcess()
        kills = []

        def advancing_kill():
            kills.append(1)
            process.die()

        clock.now += 2
        timed_out = wait_for_exit(process, CancellationSignal(), deadline, advancing_kill, poll_interval=0.01)

        assert timed_out is True
        assert kills == [1]

    def test_timeout_reported_even_when_cancelled(self):
        clock = FakeClock()
        deadline = Deadline(1, clock=clock)
        process = FakeProcess()
        signal = CancellationSignal()
        signal.cancel()
        clock.now += 2

        # Kill does nothing: cancellation cannot end the loop before the deadline check
        timed_out = wait_for_exit(process, signal, deadline, lambda: None, poll_interval=0.01)

        assert timed_out is True

    def test_already_exited(self):
        process = FakeProcess()
        process.die(0)
        kills = []

        assert wait_for_exit(process, CancellationSignal(), Deadline(0), lambda: kills.append(1)) is False
        assert kills == []
        assert process.waits == [None]
