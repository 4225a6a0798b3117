"""MSV environment configuration.

Environment variables:
    MSV_FFMPEG_PATH: FFmpeg executable
        - path or bare name looked up on PATH (default "ffmpeg")

    MSV_AVS2YUV_PATH: avs2yuv executable (script-to-raw-frame bridge)
        - path or bare name looked up on PATH (default "avs2yuv")

    MSV_POLL_INTERVAL: exit-wait loop poll interval in seconds
        - default 0.5, clamped to 0.01-5.0

    MSV_TERM_TIMEOUT: grace period after the graceful stop request (seconds)
        - default 5.0

    MSV_KILL_TIMEOUT: wait after the forced kill (seconds)
        - default 2.0

    MSV_DRAIN_TIMEOUT: wait for the output reader after exit (seconds)
        - default 10.0

    MSV_DEBUG: debug mode
        - true/1/yes = on (command line prints parsed stream info)
        - false/0/no = off (default)

    MSV_LOG_DEBUG: debug log file
        - true/1/yes = on (DEBUG logs written to a temp file)
        - false/0/no = off (default, INFO logs to stderr)
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .runtime import POLL_INTERVAL, soft_kill
from .runtime.process_runner import DEFAULT_KILL_TIMEOUT, DEFAULT_TERM_TIMEOUT

if TYPE_CHECKING:
    from .supervisor.interface import InterfaceManager

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_DRAIN_TIMEOUT = 10.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_float(
    value: str | None,
    default: float,
    minimum: float = 0.0,
    maximum: float | None = None,
) -> float:
    """Parse a float environment variable, clamped to [minimum, maximum]."""
    if not value:
        return default
    try:
        number = float(value)
    except ValueError:
        return default
    number = max(minimum, number)
    if maximum is not None:
        number = min(number, maximum)
    return number


@dataclass
class Config:
    """Supervisor configuration.

    Attributes:
        ffmpeg_path: FFmpeg executable path or name
        avs2yuv_path: avs2yuv executable path or name
        poll_interval: Exit-wait loop poll interval (seconds)
        term_timeout: Grace period after the graceful stop request
        kill_timeout: Wait after the forced kill
        drain_timeout: Wait for the output reader once the process exited
        debug: Debug mode
        log_debug: Write DEBUG logs to a temp file
        log_file: Debug log path (set when log_debug=True)
        ui_manager: Interface manager displaying jobs (set programmatically)
    """

    ffmpeg_path: str = "ffmpeg"
    avs2yuv_path: str = "avs2yuv"
    poll_interval: float = POLL_INTERVAL
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    drain_timeout: float = DEFAULT_DRAIN_TIMEOUT
    debug: bool = False
    log_debug: bool = False
    log_file: str | None = None
    ui_manager: "InterfaceManager | None" = field(default=None, repr=False, compare=False)

    @staticmethod
    def resolve_executable(path: str) -> str | None:
        """Resolve an executable to an absolute path.

        Paths (anything containing a directory separator) must point to an
        existing file; bare names are looked up on PATH.

        Returns:
            Absolute path, or None if it cannot be found
        """
        if not path:
            return None
        candidate = Path(path).expanduser()
        if candidate.parent != Path(".") or candidate.is_absolute():
            return os.path.abspath(candidate) if candidate.is_file() else None
        if candidate.is_file():
            return os.path.abspath(candidate)
        return shutil.which(path)

    @property
    def ffmpeg_path_absolute(self) -> str | None:
        """Resolved FFmpeg path, None if not found."""
        return self.resolve_executable(self.ffmpeg_path)

    @property
    def avs2yuv_path_absolute(self) -> str | None:
        """Resolved avs2yuv path, None if not found."""
        return self.resolve_executable(self.avs2yuv_path)

    def soft_kill(self, process: subprocess.Popen[Any], nested: bool = False) -> bool:
        """Stop a process using the configured grace periods."""
        return soft_kill(
            process,
            nested=nested,
            term_timeout=self.term_timeout,
            kill_timeout=self.kill_timeout,
        )

    def __repr__(self) -> str:
        return (
            f"Config(ffmpeg_path={self.ffmpeg_path}, "
            f"avs2yuv_path={self.avs2yuv_path}, "
            f"poll_interval={self.poll_interval}, "
            f"term_timeout={self.term_timeout}, "
            f"kill_timeout={self.kill_timeout}, "
            f"drain_timeout={self.drain_timeout}, "
            f"debug={self.debug}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped debug log path in the temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "media-supervisor"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"msv_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from environment variables."""
    log_debug = _parse_bool(os.environ.get("MSV_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        ffmpeg_path=os.environ.get("MSV_FFMPEG_PATH", "").strip() or "ffmpeg",
        avs2yuv_path=os.environ.get("MSV_AVS2YUV_PATH", "").strip() or "avs2yuv",
        poll_interval=_parse_float(
            os.environ.get("MSV_POLL_INTERVAL"), POLL_INTERVAL, minimum=0.01, maximum=5.0
        ),
        term_timeout=_parse_float(os.environ.get("MSV_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT),
        kill_timeout=_parse_float(os.environ.get("MSV_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT),
        drain_timeout=_parse_float(os.environ.get("MSV_DRAIN_TIMEOUT"), DEFAULT_DRAIN_TIMEOUT),
        debug=_parse_bool(os.environ.get("MSV_DEBUG"), default=False),
        log_debug=log_debug,
        log_file=log_file,
    )


# Global configuration instance (lazy)
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration (used by tests)."""
    global _config
    _config = load_config()
    return _config
