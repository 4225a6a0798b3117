"""Run context - per-run execution state.

media-supervisor supervisor v0.1.0

A new RunContext is created for every run so nothing leaks between runs.
Only the supervisor, its classifier and its wait loop write to it.
"""

from __future__ import annotations

import subprocess
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from ..parsers import AudioStreamInfo, ProgressStatus, StreamInfo, StreamType, VideoStreamInfo
from ..runtime import CancellationSignal
from .types import EncoderApp, ProcessOutput, RunOptions

__all__ = ["RunContext"]


@dataclass
class RunContext:
    """Execution state of one run.

    Attributes:
        options: Options in effect for the run
        encoder: Output dialect
        output_channel: Redirected channel
        run_id: Short unique id, stamped on every notification
        command: Full command line being run
        process: Live process handle (None before spawn and after the run)
        cancel_signal: Cooperative cancellation signal (None after the run)
        output_lines: Accumulated raw output
        file_streams: Parsed input streams (None until first parsed)
        file_duration: Input duration
        frame_count: Known or estimated frame count
        is_started: Progress lines have begun
        last_status: Last progress record
        info_parsed: Metadata has been parsed at least once
    """

    options: RunOptions
    encoder: EncoderApp = EncoderApp.OTHER
    output_channel: ProcessOutput = ProcessOutput.ERROR
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    command: str = ""

    process: subprocess.Popen[bytes] | None = None
    cancel_signal: CancellationSignal | None = field(default_factory=CancellationSignal)

    output_lines: list[str] = field(default_factory=list)
    file_streams: list[StreamInfo] | None = None
    file_duration: timedelta = field(default_factory=timedelta)
    frame_count: int = 0
    is_started: bool = False
    last_status: ProgressStatus | None = None
    info_parsed: bool = False

    def __post_init__(self) -> None:
        if not self.frame_count:
            self.frame_count = self.options.frame_count

    @property
    def output(self) -> str:
        """Accumulated output, one line per received line."""
        if not self.output_lines:
            return ""
        return "\n".join(self.output_lines) + "\n"

    @property
    def video_stream(self) -> VideoStreamInfo | None:
        """First video stream, if any."""
        for stream in self.file_streams or ():
            if stream.stream_type == StreamType.VIDEO:
                return stream  # type: ignore[return-value]
        return None

    @property
    def audio_stream(self) -> AudioStreamInfo | None:
        """First audio stream, if any."""
        for stream in self.file_streams or ():
            if stream.stream_type == StreamType.AUDIO:
                return stream  # type: ignore[return-value]
        return None
