"""Output classification per encoder dialect.

media-supervisor supervisor v0.1.0

Each dialect has its own strategy, selected once at run start:

- FFmpegClassifier: stream summary markers trigger metadata parsing,
  ``frame=`` lines become progress records
- X264Classifier: a ``frames`` header, then fixed-width progress lines
- OpaqueClassifier: buffering only, metadata parsed at end of output

Every line is appended to the run's output buffer and republished as a
DataReceivedEvent before any dialect rule runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import ClassVar

from ..parsers import OutputParser, ProgressStatus
from .context import RunContext
from .events import (
    DataReceivedEvent,
    InfoUpdatedEvent,
    StatusUpdatedEvent,
    SupervisorEvent,
)
from .types import EncoderApp

__all__ = [
    "OutputClassifier",
    "FFmpegClassifier",
    "X264Classifier",
    "OpaqueClassifier",
    "create_classifier",
    "X264_PROGRESS_WIDTH",
]

logger = logging.getLogger(__name__)

# FFmpeg markers
OUTPUT_HEADER_PREFIX = "Output "
PRESS_TO_STOP_PREFIX = "Press [q] to stop"
PROGRESS_PREFIX = "frame="

# x264 markers
X264_HEADER_PREFIX = "frames "
X264_PROGRESS_WIDTH = 48

Publisher = Callable[[SupervisorEvent], None]


class OutputClassifier(ABC):
    """Base strategy: buffer, republish, then classify each line.

    Subclasses implement _classify() and may override finish().
    """

    encoder: ClassVar[EncoderApp]

    def __init__(
        self,
        ctx: RunContext,
        parser: OutputParser,
        publish: Publisher,
    ) -> None:
        self._ctx = ctx
        self._parser = parser
        self._publish = publish

    def feed(self, line: str) -> None:
        """Handle one received line."""
        ctx = self._ctx
        ctx.output_lines.append(line)
        self._publish(
            DataReceivedEvent(line=line, output=ctx.output_channel, run_id=ctx.run_id)
        )
        self._classify(line)

    @abstractmethod
    def _classify(self, line: str) -> None:
        ...

    def finish(self) -> None:
        """Handle end of output. Default: nothing."""

    def _parse_file_info(self) -> None:
        """Parse duration and streams, then derive the frame count."""
        ctx = self._ctx
        duration, streams = self._parser.parse_file_info(ctx.output)
        ctx.file_duration = duration
        ctx.file_streams = list(streams)
        ctx.info_parsed = True

        if ctx.options.frame_count > 0:
            ctx.frame_count = ctx.options.frame_count
        else:
            video = ctx.video_stream
            if video is not None:
                ctx.frame_count = int(duration.total_seconds() * video.frame_rate)

        logger.debug(
            f"[{ctx.run_id}] File info: duration={duration} "
            f"streams={len(ctx.file_streams)} frame_count={ctx.frame_count}"
        )
        self._publish(InfoUpdatedEvent(run_id=ctx.run_id))

    def _report_progress(self, status: ProgressStatus) -> None:
        self._ctx.last_status = status
        self._publish(StatusUpdatedEvent(status=status, run_id=self._ctx.run_id))


class FFmpegClassifier(OutputClassifier):
    """Full-featured dialect."""

    encoder = EncoderApp.FFMPEG

    def _classify(self, line: str) -> None:
        ctx = self._ctx
        if ctx.file_streams is None and (
            line.startswith(OUTPUT_HEADER_PREFIX) or line.startswith(PRESS_TO_STOP_PREFIX)
        ):
            self._parse_file_info()

        if line.startswith(PRESS_TO_STOP_PREFIX) or line.startswith(PROGRESS_PREFIX):
            ctx.is_started = True

        if ctx.is_started and line.startswith(PROGRESS_PREFIX):
            self._report_progress(self._parser.parse_ffmpeg_progress(line))

    def finish(self) -> None:
        # e.g. "ffmpeg -i input" prints stream info but never an output header
        if not self._ctx.info_parsed and not self._ctx.is_started:
            self._parse_file_info()


class X264Classifier(OutputClassifier):
    """Compact dialect with fixed-width status lines."""

    encoder = EncoderApp.X264

    def _classify(self, line: str) -> None:
        ctx = self._ctx
        if not ctx.is_started and line.startswith(X264_HEADER_PREFIX):
            ctx.is_started = True
        elif ctx.is_started and len(line) == X264_PROGRESS_WIDTH:
            self._report_progress(self._parser.parse_x264_progress(line))

    def finish(self) -> None:
        if not self._ctx.info_parsed and not self._ctx.is_started:
            self._parse_file_info()


class OpaqueClassifier(OutputClassifier):
    """No inline markers; metadata is parsed once the output ends."""

    encoder = EncoderApp.OTHER

    def _classify(self, line: str) -> None:
        pass

    def finish(self) -> None:
        if not self._ctx.info_parsed:
            self._parse_file_info()


_CLASSIFIERS: dict[EncoderApp, type[OutputClassifier]] = {
    cls.encoder: cls for cls in (FFmpegClassifier, X264Classifier, OpaqueClassifier)
}


def create_classifier(
    ctx: RunContext,
    parser: OutputParser,
    publish: Publisher,
) -> OutputClassifier:
    """Create the classifier for the run's dialect.

    Args:
        ctx: The run context (its encoder selects the strategy)
        parser: Text parser collaborator
        publish: Callback publishing notifications

    Returns:
        A classifier bound to ctx

    Raises:
        ValueError: Unsupported dialect
    """
    encoder = EncoderApp(ctx.encoder)
    try:
        classifier_cls = _CLASSIFIERS[encoder]
    except KeyError:
        raise ValueError(f"Unsupported encoder dialect: {encoder}") from None
    return classifier_cls(ctx, parser, publish)
