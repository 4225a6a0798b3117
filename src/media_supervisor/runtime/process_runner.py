"""Process launch, output reading and termination.

media-supervisor runtime module v0.1.0

This module provides:
- Process descriptors (executable + single argument string)
- Subprocess isolation (new session/process group)
- Line-by-line reading of one redirected output channel on a worker thread
- Soft kill: graceful request (SIGTERM / CTRL_BREAK_EVENT) -> timeout -> force kill
- Best-effort helpers whose failures are logged and ignored

Key design points:
- POSIX: start_new_session=True so a nested shell pipeline can be signalled
  as a whole through its process group
- Windows: CREATE_NEW_PROCESS_GROUP so CTRL_BREAK_EVENT reaches the child only
- Carriage returns terminate lines, since encoders redraw status with "\\r"
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import signal
import subprocess
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import IO, Any

__all__ = [
    "IS_WINDOWS",
    "ProcessSpec",
    "LineReader",
    "launch",
    "soft_kill",
    "set_priority",
    "best_effort",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts
DEFAULT_TERM_TIMEOUT = 5.0  # seconds to wait after the graceful request
DEFAULT_KILL_TIMEOUT = 2.0  # seconds to wait after the forced kill

_LINE_BREAK_RE = re.compile(rb"\r\n|\r|\n")


def best_effort(
    action: Callable[..., Any],
    *args: Any,
    description: str = "",
) -> bool:
    """Run an operation whose failure must never reach the caller.

    Used for priority changes, kill attempts and temporary-file deletion.

    Args:
        action: Callable to run
        *args: Positional arguments for the callable
        description: Short label used in the debug log

    Returns:
        True if the action completed, False if it raised
    """
    try:
        action(*args)
        return True
    except Exception as e:
        logger.debug(f"Ignored failure ({description or getattr(action, '__name__', action)}): {e}")
        return False


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a process to launch.

    Attributes:
        executable: Path of the program to start
        arguments: All arguments as one command-line string
        hidden: Detach from the console window and redirect output
        capture_stdout: Redirect standard output for line events
        capture_stderr: Redirect standard error for line events
        nested: The process is a shell hosting children; kill the whole group
        creationflags: Extra Windows creation flags (priority class)
    """

    executable: str
    arguments: str = ""
    hidden: bool = True
    capture_stdout: bool = False
    capture_stderr: bool = False
    nested: bool = False
    creationflags: int = 0

    def __post_init__(self) -> None:
        if self.capture_stdout and self.capture_stderr:
            raise ValueError("only one output channel can be captured per run")

    @property
    def command_line(self) -> str:
        """Full command as it would be typed in a console."""
        if self.arguments:
            return f'"{self.executable}" {self.arguments}'
        return f'"{self.executable}"'

    def build_argv(self) -> list[str] | str:
        """Build the argument vector for subprocess.

        POSIX splits the argument string with shell quoting rules; Windows
        passes the command line through untouched, as CreateProcess expects.
        """
        if IS_WINDOWS:
            return subprocess.list2cmdline([self.executable]) + (
                f" {self.arguments}" if self.arguments else ""
            )
        return [self.executable, *shlex.split(self.arguments)]


def _build_subprocess_kwargs(spec: ProcessSpec) -> dict[str, Any]:
    """Build platform-specific subprocess kwargs."""
    kwargs: dict[str, Any] = {}

    if IS_WINDOWS:
        flags = subprocess.CREATE_NEW_PROCESS_GROUP | spec.creationflags
        if spec.hidden:
            flags |= subprocess.CREATE_NO_WINDOW
        kwargs["creationflags"] = flags
    else:
        kwargs["start_new_session"] = True

    return kwargs


def launch(spec: ProcessSpec) -> subprocess.Popen[bytes]:
    """Start the process described by spec.

    The captured channel is a binary pipe; the other channel is inherited
    from the parent. Hidden processes get stdin from DEVNULL so they cannot
    consume the parent's console input.

    Args:
        spec: Process specification

    Returns:
        The started process

    Raises:
        OSError: If the operating system refuses to start the process
    """
    process = subprocess.Popen(
        spec.build_argv(),
        stdin=subprocess.DEVNULL if spec.hidden else None,
        stdout=subprocess.PIPE if spec.capture_stdout else None,
        stderr=subprocess.PIPE if spec.capture_stderr else None,
        **_build_subprocess_kwargs(spec),
    )
    logger.debug(f"Started process pid={process.pid} command={spec.command_line}")
    return process


def set_priority(process: subprocess.Popen[bytes], nice: int) -> None:
    """Apply a POSIX nice value to a running process.

    Windows priority classes are applied at creation time through
    ProcessSpec.creationflags, so this is a no-op there.

    Raises:
        OSError: If the process is gone or the change is not permitted
    """
    if IS_WINDOWS or process.poll() is not None:
        return
    os.setpriority(os.PRIO_PROCESS, process.pid, nice)


class LineReader(threading.Thread):
    """Daemon thread delivering one output channel line by line.

    ``on_line`` receives each decoded line without its terminator, in the
    order the process wrote them. ``on_eof`` is called once after the last
    line, when the channel closes.
    """

    def __init__(
        self,
        stream: IO[bytes],
        on_line: Callable[[str], None],
        on_eof: Callable[[], None] | None = None,
        *,
        name: str = "output-reader",
        encoding: str = "utf-8",
    ) -> None:
        super().__init__(name=name, daemon=True)
        self._stream = stream
        self._on_line = on_line
        self._on_eof = on_eof
        self._encoding = encoding

    def _emit(self, raw: bytes) -> None:
        line = raw.decode(self._encoding, errors="replace")
        try:
            self._on_line(line)
        except Exception:
            # Keep draining; a stalled pipe would block the child process
            logger.exception("Output line handler failed")

    def run(self) -> None:
        pending = b""
        read = getattr(self._stream, "read1", self._stream.read)
        try:
            while True:
                try:
                    chunk = read(4096)
                except (OSError, ValueError):
                    break
                if not chunk:
                    break

                data = pending + chunk
                # A trailing "\r" may be the first half of "\r\n"
                hold_cr = data.endswith(b"\r")
                if hold_cr:
                    data = data[:-1]
                parts = _LINE_BREAK_RE.split(data)
                pending = parts.pop()
                if hold_cr:
                    pending += b"\r"
                for part in parts:
                    self._emit(part)

            pending = pending.rstrip(b"\r")
            if pending:
                self._emit(pending)
        finally:
            best_effort(self._stream.close, description="close output pipe")
            if self._on_eof is not None:
                try:
                    self._on_eof()
                except Exception:
                    logger.exception("End-of-output handler failed")


def _graceful_terminate(process: subprocess.Popen[bytes], nested: bool) -> None:
    """Ask the process (or its whole group) to stop."""
    if IS_WINDOWS:
        try:
            os.kill(process.pid, signal.CTRL_BREAK_EVENT)
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={process.pid}")
        except (ProcessLookupError, OSError) as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back to terminate: {e}")
            process.terminate()
        return

    if nested:
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, signal.SIGTERM)
            logger.debug(f"Sent SIGTERM to process group pgid={pgid}")
            return
        except ProcessLookupError:
            return
        except OSError as e:
            logger.debug(f"killpg failed, falling back to terminate: {e}")
    process.terminate()


def _force_kill(process: subprocess.Popen[bytes], nested: bool) -> None:
    """Kill the process (or its whole group) without negotiation."""
    if not IS_WINDOWS and nested:
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group pgid={pgid}")
            return
        except ProcessLookupError:
            return
        except OSError as e:
            logger.debug(f"killpg failed, falling back to kill: {e}")
    process.kill()


def _wait(process: subprocess.Popen[bytes], timeout: float) -> int | None:
    try:
        return process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        return None


def soft_kill(
    process: subprocess.Popen[bytes],
    *,
    nested: bool = False,
    term_timeout: float = DEFAULT_TERM_TIMEOUT,
    kill_timeout: float = DEFAULT_KILL_TIMEOUT,
) -> bool:
    """Terminate a process gracefully, then forcefully if needed.

    Termination strategy:
    1. Send SIGTERM (CTRL_BREAK_EVENT on Windows), to the group when nested
    2. Wait up to term_timeout for a clean exit
    3. If still running, send SIGKILL (kill() on Windows)
    4. Wait up to kill_timeout for the forced exit

    Args:
        process: The process to stop
        nested: Signal the whole process group (shell pipelines)
        term_timeout: Grace period after the graceful request
        kill_timeout: Wait after the forced kill

    Returns:
        True if the process has exited when this returns
    """
    if process.poll() is not None:
        return True

    pid = process.pid
    logger.debug(f"Soft-killing process pid={pid} nested={nested}")

    try:
        _graceful_terminate(process, nested)
        if _wait(process, term_timeout) is not None:
            logger.debug(f"Process exited gracefully pid={pid} returncode={process.returncode}")
            return True

        logger.debug(f"Force killing process pid={pid}")
        _force_kill(process, nested)
        if _wait(process, kill_timeout) is not None:
            logger.debug(f"Process killed pid={pid} returncode={process.returncode}")
            return True

        logger.warning(f"Process did not exit after kill pid={pid}")
    except ProcessLookupError:
        logger.debug(f"Process already exited pid={pid}")
    return process.poll() is not None
