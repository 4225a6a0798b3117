"""LoggingInterfaceManager tests."""

from __future__ import annotations

import logging

from media_supervisor.supervisor import (
    CompletionStatus,
    InterfaceManager,
    LoggingInterfaceManager,
)


class StubSupervisor:
    command_with_args = '"/usr/bin/ffmpeg" -i in.mkv out.mp4'
    output = "\n".join(f"line {i}" for i in range(30)) + "\n"
    last_completion_status = CompletionStatus.ERROR


def test_satisfies_protocol():
    assert isinstance(LoggingInterfaceManager(), InterfaceManager)


def test_display_logs_command(caplog):
    with caplog.at_level(logging.INFO, logger="media_supervisor"):
        LoggingInterfaceManager().display(StubSupervisor())

    assert "Running: \"/usr/bin/ffmpeg\" -i in.mkv out.mp4" in caplog.text


def test_display_error_logs_tail(caplog):
    with caplog.at_level(logging.ERROR, logger="media_supervisor"):
        LoggingInterfaceManager(tail_lines=3).display_error(StubSupervisor())

    messages = [record.getMessage() for record in caplog.records]
    assert messages[0].startswith("Job failed (error)")
    assert messages[1:] == ["  line 27", "  line 28", "  line 29"]


def test_custom_logger(caplog):
    log = logging.getLogger("custom.ui")
    with caplog.at_level(logging.INFO, logger="custom.ui"):
        LoggingInterfaceManager(log=log).display(StubSupervisor())

    assert caplog.records[0].name == "custom.ui"
