"""Process runner unit tests.

Test coverage:
- Process descriptors and argument splitting
- Line reading (\\n, \\r\\n and bare \\r terminators, chunk boundaries)
- Process isolation (new session/process group)
- Soft kill (graceful, forced, process group)
- Best-effort helpers
"""

from __future__ import annotations

import os
import shlex
import sys
import time

import pytest

from media_supervisor.runtime.process_runner import (
    IS_WINDOWS,
    LineReader,
    ProcessSpec,
    best_effort,
    launch,
    set_priority,
    soft_kill,
)

posix_only = pytest.mark.skipif(IS_WINDOWS, reason="POSIX process groups and signals")


class ChunkStream:
    """Binary stream double returning preset chunks."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = list(chunks)
        self.closed = False

    def read1(self, size: int = -1) -> bytes:
        return self._chunks.pop(0) if self._chunks else b""

    read = read1

    def close(self) -> None:
        self.closed = True


def read_all(chunks: list[bytes]) -> tuple[list[str], list[bool]]:
    lines: list[str] = []
    eof: list[bool] = []
    reader = LineReader(ChunkStream(chunks), lines.append, lambda: eof.append(True))
    reader.start()
    reader.join(timeout=5)
    assert not reader.is_alive()
    return lines, eof


# =============================================================================
# ProcessSpec
# =============================================================================


class TestProcessSpec:
    def test_defaults(self):
        spec = ProcessSpec(executable="/usr/bin/ffmpeg")
        assert spec.hidden is True
        assert spec.nested is False
        assert spec.capture_stdout is False
        assert spec.capture_stderr is False

    def test_rejects_two_channels(self):
        with pytest.raises(ValueError):
            ProcessSpec(executable="x", capture_stdout=True, capture_stderr=True)

    def test_command_line(self):
        spec = ProcessSpec(executable="/usr/bin/ffmpeg", arguments='-i "a b.mkv" out.mp4')
        assert spec.command_line == '"/usr/bin/ffmpeg" -i "a b.mkv" out.mp4'
        assert ProcessSpec(executable="/bin/true").command_line == '"/bin/true"'

    @posix_only
    def test_argv_uses_shell_quoting(self):
        spec = ProcessSpec(executable="/usr/bin/ffmpeg", arguments='-i "a b.mkv" -y out.mp4')
        assert spec.build_argv() == ["/usr/bin/ffmpeg", "-i", "a b.mkv", "-y", "out.mp4"]

    @posix_only
    def test_empty_arguments(self):
        assert ProcessSpec(executable="/bin/true").build_argv() == ["/bin/true"]


# =============================================================================
# LineReader
# =============================================================================


class TestLineReader:
    def test_newlines(self):
        lines, eof = read_all([b"one\ntwo\n"])
        assert lines == ["one", "two"]
        assert eof == [True]

    def test_carriage_returns_split_lines(self):
        lines, _ = read_all([b"frame=1\rframe=2\rframe=3\r\ndone\n"])
        assert lines == ["frame=1", "frame=2", "frame=3", "done"]

    def test_crlf_split_across_chunks(self):
        lines, _ = read_all([b"first\r", b"\nsecond\r\n"])
        assert lines == ["first", "second"]

    def test_line_split_across_chunks(self):
        lines, _ = read_all([b"fra", b"me=10\nfr", b"ame=20"])
        assert lines == ["frame=10", "frame=20"]

    def test_trailing_cr_at_eof(self):
        lines, _ = read_all([b"last\r"])
        assert lines == ["last"]

    def test_empty_lines_preserved(self):
        lines, _ = read_all([b"a\n\nb\n"])
        assert lines == ["a", "", "b"]

    def test_invalid_utf8_replaced(self):
        lines, _ = read_all([b"caf\xe9\n"])
        assert lines == ["caf\ufffd"]

    def test_handler_error_does_not_stop_reading(self):
        lines: list[str] = []

        def handler(line: str) -> None:
            if line == "bad":
                raise RuntimeError("boom")
            lines.append(line)

        stream = ChunkStream([b"good\nbad\nafter\n"])
        reader = LineReader(stream, handler)
        reader.start()
        reader.join(timeout=5)

        assert lines == ["good", "after"]
        assert stream.closed is True

    def test_is_daemon(self):
        assert LineReader(ChunkStream([]), lambda line: None).daemon is True


# =============================================================================
# best_effort
# =============================================================================


class TestBestEffort:
    def test_success(self):
        calls = []
        assert best_effort(calls.append, 1) is True
        assert calls == [1]

    def test_failure_swallowed(self):
        def fail():
            raise OSError("nope")

        assert best_effort(fail, description="failing op") is False

    def test_remove_missing_file(self, tmp_path):
        assert best_effort(os.remove, str(tmp_path / "missing")) is False


# =============================================================================
# launch / soft_kill
# =============================================================================


def python_spec(code: str, **kwargs) -> ProcessSpec:
    return ProcessSpec(
        executable=sys.executable,
        arguments=shlex.join(["-c", code]),
        **kwargs,
    )


@posix_only
class TestLaunch:
    def test_captures_stderr_only(self):
        spec = python_spec("import sys; sys.stderr.write('err\\n')", capture_stderr=True)
        process = launch(spec)
        try:
            assert process.stdout is None
            assert process.stderr.read() == b"err\n"
        finally:
            process.wait(timeout=10)

    def test_captures_stdout(self):
        process = launch(python_spec("print('out')", capture_stdout=True))
        try:
            assert process.stdout.read() == b"out\n"
        finally:
            process.wait(timeout=10)

    def test_new_session(self):
        process = launch(python_spec("import time; time.sleep(0.5)"))
        try:
            assert os.getpgid(process.pid) != os.getpgid(0)
            assert os.getpgid(process.pid) == process.pid
        finally:
            process.wait(timeout=10)

    def test_missing_executable_raises(self, tmp_path):
        with pytest.raises(OSError):
            launch(ProcessSpec(executable=str(tmp_path / "nope")))

    def test_set_priority(self):
        process = launch(python_spec("import time; time.sleep(2)"))
        try:
            target = min(os.getpriority(os.PRIO_PROCESS, 0) + 1, 19)
            set_priority(process, target)
            assert os.getpriority(os.PRIO_PROCESS, process.pid) == target
        finally:
            soft_kill(process, term_timeout=2, kill_timeout=2)

    def test_set_priority_after_exit_is_noop(self):
        process = launch(python_spec("pass"))
        process.wait(timeout=10)
        set_priority(process, 10)


@posix_only
class TestSoftKill:
    def test_already_exited(self):
        process = launch(python_spec("pass"))
        process.wait(timeout=10)
        assert soft_kill(process) is True

    def test_graceful(self):
        process = launch(python_spec("import time; time.sleep(30)"))
        time.sleep(0.2)
        start = time.monotonic()
        assert soft_kill(process, term_timeout=5, kill_timeout=2) is True
        assert time.monotonic() - start < 5
        assert process.returncode == -15

    def test_force_kill_when_term_ignored(self):
        code = (
            "import signal, sys, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "sys.stdout.write('ready\\n'); sys.stdout.flush()\n"
            "time.sleep(30)\n"
        )
        process = launch(python_spec(code, capture_stdout=True))
        assert process.stdout.readline() == b"ready\n"

        assert soft_kill(process, term_timeout=0.3, kill_timeout=2) is True
        assert process.returncode == -9

    def test_nested_kills_process_group(self):
        code = (
            "import subprocess, sys, time\n"
            "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
            "sys.stdout.write(str(child.pid) + '\\n'); sys.stdout.flush()\n"
            "time.sleep(30)\n"
        )
        process = launch(python_spec(code, capture_stdout=True, nested=True))
        child_pid = int(process.stdout.readline())

        assert soft_kill(process, nested=True, term_timeout=5, kill_timeout=2) is True

        # The grandchild received SIGTERM through the group
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            try:
                os.kill(child_pid, 0)
            except ProcessLookupError:
                break
            # Reparented zombies still answer kill(0); check their state
            try:
                with open(f"/proc/{child_pid}/stat") as f:
                    if f.read().split()[2] == "Z":
                        break
            except OSError:
                break
            time.sleep(0.05)
        else:
            pytest.fail("grandchild still running after group kill")
