"""Pytest configuration and fixtures."""

from __future__ import annotations

import shlex
import sys
import threading
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path (development checkout)
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_ENCODER_PATH = FIXTURES_DIR / "fake_encoder.py"

from media_supervisor.config import Config  # noqa: E402
from media_supervisor.supervisor import ProcessSupervisor, RunOptions  # noqa: E402


def build_fake_args(*args: str) -> str:
    """Argument string running the fake encoder with the given options."""
    return shlex.join([str(FAKE_ENCODER_PATH), *args])


@pytest.fixture
def fake_encoder() -> Path:
    """Path of the fake encoder script."""
    return FAKE_ENCODER_PATH


@pytest.fixture
def python_exe() -> str:
    """Interpreter used to run the fake encoder."""
    return sys.executable


@pytest.fixture
def fast_config() -> Config:
    """Configuration with short poll and kill timings."""
    return Config(
        ffmpeg_path=sys.executable,
        avs2yuv_path=sys.executable,
        poll_interval=0.05,
        term_timeout=2.0,
        kill_timeout=2.0,
        drain_timeout=5.0,
    )


@pytest.fixture
def supervisor(fast_config: Config) -> ProcessSupervisor:
    """Supervisor with hidden output and fast timings."""
    return ProcessSupervisor(config=fast_config, options=RunOptions())


class EventRecorder:
    """Thread-safe collector for supervisor notifications."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list = []

    def __call__(self, event) -> None:
        with self._lock:
            self.events.append(event)

    def of_kind(self, kind) -> list:
        with self._lock:
            return [e for e in self.events if e.kind == kind]

    @property
    def kinds(self) -> list:
        with self._lock:
            return [e.kind for e in self.events]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def fake_args():
    """Build an argument string for the fake encoder."""
    return build_fake_args
