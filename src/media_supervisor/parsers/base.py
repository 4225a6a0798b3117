"""Base types for console-output parsing.

media-supervisor parsers v0.1.0

This module defines:
- Stream type enumeration
- The OutputParser protocol consumed by the supervisor
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import ProgressStatus, StreamInfo

__all__ = [
    "StreamType",
    "OutputParser",
    "VERSION",
]

VERSION: Final[str] = "0.1.0"


class StreamType(str, Enum):
    """Kind of media stream reported in a tool's stream summary."""

    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLE = "subtitle"
    DATA = "data"
    ATTACHMENT = "attachment"
    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label: str) -> "StreamType":
        """Map an FFmpeg stream label ("Video", "Audio", ...) to a StreamType."""
        value = label.strip().lower()
        for kind in cls:
            if kind.value == value:
                return kind
        return cls.UNKNOWN


@runtime_checkable
class OutputParser(Protocol):
    """Turns raw console text into structured records.

    The supervisor only calls these three methods; it never looks inside the
    text itself.
    """

    def parse_file_info(self, text: str) -> tuple[timedelta, list["StreamInfo"]]:
        """Extract input duration and stream list from accumulated output."""
        ...

    def parse_ffmpeg_progress(self, line: str) -> "ProgressStatus":
        """Parse a full-dialect ``frame=`` progress line."""
        ...

    def parse_x264_progress(self, line: str) -> "ProgressStatus":
        """Parse a compact-dialect fixed-width progress line."""
        ...
