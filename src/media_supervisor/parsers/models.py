"""Parsed value records.

media-supervisor parsers v0.1.0

Structured results produced from console output. They are frozen: the
supervisor stores and republishes them without modification.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .base import StreamType

__all__ = [
    "StreamInfo",
    "VideoStreamInfo",
    "AudioStreamInfo",
    "ProgressStatus",
]


class StreamInfo(BaseModel):
    """One stream detected in the input.

    Attributes:
        index: Stream index inside the input file
        stream_type: Kind of stream
        format: Codec name as printed by the tool
        raw_text: The full summary line, kept for display and debugging
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    index: int = 0
    stream_type: StreamType = StreamType.UNKNOWN
    format: str = ""
    raw_text: str = ""


class VideoStreamInfo(StreamInfo):
    """Video stream details."""

    stream_type: Literal[StreamType.VIDEO] = StreamType.VIDEO
    color_space: str = ""
    width: int = 0
    height: int = 0
    sar_1: int = 1
    sar_2: int = 1
    frame_rate: float = 0.0
    bitrate: int = 0


class AudioStreamInfo(StreamInfo):
    """Audio stream details."""

    stream_type: Literal[StreamType.AUDIO] = StreamType.AUDIO
    sample_rate: int = 0
    channels: str = ""
    bitrate: int = 0


class ProgressStatus(BaseModel):
    """Snapshot of encoding progress taken from one output line.

    Attributes:
        frame: Frames processed so far
        fps: Current processing rate in frames per second
        quantizer: Current quantizer value (FFmpeg ``q=``)
        size_kb: Output size written so far, in kilobytes
        time: Position reached in the output timeline
        bitrate: Current bitrate as printed (e.g. ``"1234.5kbits/s"``)
        speed: Speed relative to real time
        raw_text: The line the record was parsed from
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    frame: int = 0
    fps: float = 0.0
    quantizer: float = 0.0
    size_kb: int = 0
    time: timedelta = Field(default_factory=timedelta)
    bitrate: str = ""
    speed: float = 0.0
    raw_text: str = ""
