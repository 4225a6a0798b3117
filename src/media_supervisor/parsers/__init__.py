"""Console-output parsers.

media-supervisor parsers v0.1.0

Turns the free text printed by media tools into structured records:

    from media_supervisor.parsers import FFmpegParser

    parser = FFmpegParser()
    duration, streams = parser.parse_file_info(text)
    status = parser.parse_ffmpeg_progress(line)

Any object implementing OutputParser can replace the default parser.
"""

from __future__ import annotations

from .base import VERSION, OutputParser, StreamType
from .ffmpeg import FFmpegParser
from .models import AudioStreamInfo, ProgressStatus, StreamInfo, VideoStreamInfo

__version__ = VERSION

__all__ = [
    "__version__",
    # Protocol
    "OutputParser",
    # Types
    "StreamType",
    "StreamInfo",
    "VideoStreamInfo",
    "AudioStreamInfo",
    "ProgressStatus",
    # Default implementation
    "FFmpegParser",
    "create_parser",
]


def create_parser() -> OutputParser:
    """Create the default parser instance."""
    return FFmpegParser()
