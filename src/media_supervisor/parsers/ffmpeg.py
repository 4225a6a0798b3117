"""Default console-output parser.

media-supervisor parsers v0.1.0

Regex-based parser for the text FFmpeg writes to its console, plus the
compact fixed-width status lines printed by x264-style encoders.

Handled shapes:
    Duration: 00:01:40.00, start: 0.000000, bitrate: 1205 kb/s
    Stream #0:0(und): Video: h264 (High), yuv420p(tv, bt709), 1920x1080 [SAR 1:1 DAR 16:9], 25 fps, ...
    Stream #0:1[0x2](eng): Audio: aac (LC), 48000 Hz, stereo, fltp, 128 kb/s
    frame=  100 fps= 25 q=28.0 size=     512kB time=00:00:04.00 bitrate=1048.6kbits/s speed=1.00x
    123     24.51   1580.23   0:00:05   0:01:02
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta

from .base import StreamType
from .models import AudioStreamInfo, ProgressStatus, StreamInfo, VideoStreamInfo

__all__ = ["FFmpegParser"]

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_STREAM_RE = re.compile(
    r"^\s*Stream #(\d+):(\d+)(?:\[[^\]]*\])?(?:\([^)]*\))?:\s*(\w+):\s*(.*)$"
)
# Commas inside parentheses belong to the same field: "yuv420p(tv, bt709)"
_FIELD_SPLIT_RE = re.compile(r",\s*(?![^()]*\))")
_RESOLUTION_RE = re.compile(r"\b(\d{2,5})x(\d{2,5})\b")
_SAR_RE = re.compile(r"SAR (\d+):(\d+)")
_FPS_RE = re.compile(r"([\d.]+)\s*fps")
_TBR_RE = re.compile(r"([\d.]+)(k?)\s*tbr")
_KBPS_RE = re.compile(r"(\d+)\s*kb/s")
_HZ_RE = re.compile(r"(\d+)\s*Hz")
_TIMESTAMP_RE = re.compile(r"(-?\d+):(\d{2}):(\d{2}(?:\.\d+)?)")

_PROGRESS_FIELDS = {
    "frame": re.compile(r"frame=\s*(\d+)"),
    "fps": re.compile(r"fps=\s*([\d.]+)"),
    "q": re.compile(r"q=\s*(-?[\d.]+)"),
    "size": re.compile(r"L?size=\s*(\d+)\s*(kB|KiB|MB|MiB|B)?"),
    "time": re.compile(r"time=\s*(-?\d+:\d{2}:\d{2}(?:\.\d+)?)"),
    "bitrate": re.compile(r"bitrate=\s*([\d.]+\s*[kMG]?bits/s|N/A)"),
    "speed": re.compile(r"speed=\s*([\d.]+)x"),
}


def _parse_timestamp(value: str) -> timedelta:
    """Convert ``HH:MM:SS.ms`` to a timedelta; malformed input gives zero."""
    match = _TIMESTAMP_RE.search(value)
    if not match:
        return timedelta()
    hours, minutes, seconds = match.groups()
    total = abs(int(hours)) * 3600 + int(minutes) * 60 + float(seconds)
    return timedelta(seconds=total)


def _to_float(value: str, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: str, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class FFmpegParser:
    """Parser for FFmpeg and x264 console output.

    Stateless; one instance can be shared by any number of supervisors.

    Example:
        parser = FFmpegParser()
        duration, streams = parser.parse_file_info(console_text)
        status = parser.parse_ffmpeg_progress("frame=   10 fps=25 ...")
    """

    def parse_file_info(self, text: str) -> tuple[timedelta, list[StreamInfo]]:
        """Extract the input duration and input streams.

        Only the ``Input`` section is considered: stream lines after the
        first ``Output #`` header describe the output file and are skipped.

        Args:
            text: Accumulated console output

        Returns:
            Tuple of (duration, streams); zero duration when absent
        """
        duration = timedelta()
        streams: list[StreamInfo] = []

        for line in text.splitlines():
            if line.startswith("Output #"):
                break
            if not duration:
                match = _DURATION_RE.search(line)
                if match:
                    duration = _parse_timestamp(match.group(0))
                    continue
            stream = self._parse_stream_line(line)
            if stream is not None:
                streams.append(stream)

        logger.debug(f"Parsed file info: duration={duration} streams={len(streams)}")
        return duration, streams

    def _parse_stream_line(self, line: str) -> StreamInfo | None:
        match = _STREAM_RE.match(line)
        if not match:
            return None

        index = _to_int(match.group(2))
        stream_type = StreamType.from_label(match.group(3))
        details = match.group(4)
        fields = _FIELD_SPLIT_RE.split(details)
        codec = fields[0].split(" ")[0] if fields and fields[0] else ""
        raw_text = line.strip()

        if stream_type == StreamType.VIDEO:
            return self._parse_video(index, codec, fields, details, raw_text)
        if stream_type == StreamType.AUDIO:
            return self._parse_audio(index, codec, fields, details, raw_text)
        return StreamInfo(
            index=index,
            stream_type=stream_type,
            format=codec,
            raw_text=raw_text,
        )

    def _parse_video(
        self,
        index: int,
        codec: str,
        fields: list[str],
        details: str,
        raw_text: str,
    ) -> VideoStreamInfo:
        color_space = ""
        if len(fields) > 1 and not _RESOLUTION_RE.search(fields[1]):
            color_space = fields[1].split("(")[0].strip()

        width = height = 0
        resolution = _RESOLUTION_RE.search(details)
        if resolution:
            width, height = int(resolution.group(1)), int(resolution.group(2))

        sar_1 = sar_2 = 1
        sar = _SAR_RE.search(details)
        if sar:
            sar_1, sar_2 = int(sar.group(1)), int(sar.group(2))

        frame_rate = 0.0
        fps = _FPS_RE.search(details)
        if fps:
            frame_rate = _to_float(fps.group(1))
        else:
            tbr = _TBR_RE.search(details)
            if tbr:
                frame_rate = _to_float(tbr.group(1)) * (1000 if tbr.group(2) else 1)

        bitrate = 0
        kbps = _KBPS_RE.search(details)
        if kbps:
            bitrate = int(kbps.group(1))

        return VideoStreamInfo(
            index=index,
            format=codec,
            raw_text=raw_text,
            color_space=color_space,
            width=width,
            height=height,
            sar_1=sar_1,
            sar_2=sar_2,
            frame_rate=frame_rate,
            bitrate=bitrate,
        )

    def _parse_audio(
        self,
        index: int,
        codec: str,
        fields: list[str],
        details: str,
        raw_text: str,
    ) -> AudioStreamInfo:
        sample_rate = 0
        channels = ""
        for position, field_text in enumerate(fields):
            hz = _HZ_RE.search(field_text)
            if hz:
                sample_rate = int(hz.group(1))
                if position + 1 < len(fields):
                    channels = fields[position + 1].strip()
                break

        bitrate = 0
        kbps = _KBPS_RE.search(details)
        if kbps:
            bitrate = int(kbps.group(1))

        return AudioStreamInfo(
            index=index,
            format=codec,
            raw_text=raw_text,
            sample_rate=sample_rate,
            channels=channels,
            bitrate=bitrate,
        )

    def parse_ffmpeg_progress(self, line: str) -> ProgressStatus:
        """Parse a ``frame=`` status line.

        Missing or ``N/A`` fields keep their zero defaults.

        Args:
            line: One FFmpeg status line

        Returns:
            The parsed progress record
        """
        values: dict[str, str] = {}
        size_unit = "kB"
        for name, pattern in _PROGRESS_FIELDS.items():
            match = pattern.search(line)
            if match:
                values[name] = match.group(1)
                if name == "size" and match.group(2):
                    size_unit = match.group(2)

        size_kb = _to_int(values.get("size", "0"))
        if size_unit in ("MB", "MiB"):
            size_kb *= 1024
        elif size_unit == "B":
            size_kb //= 1024

        bitrate = values.get("bitrate", "")
        return ProgressStatus(
            frame=_to_int(values.get("frame", "0")),
            fps=_to_float(values.get("fps", "0")),
            quantizer=_to_float(values.get("q", "0")),
            size_kb=size_kb,
            time=_parse_timestamp(values.get("time", "")),
            bitrate="" if bitrate == "N/A" else bitrate.replace(" ", ""),
            speed=_to_float(values.get("speed", "0")),
            raw_text=line,
        )

    def parse_x264_progress(self, line: str) -> ProgressStatus:
        """Parse a fixed-width x264 status line.

        Columns are ``frames fps kb/s elapsed [remain ...]``.

        Args:
            line: One status line printed after the ``frames`` header

        Returns:
            The parsed progress record
        """
        tokens = line.split()
        frame = _to_int(tokens[0]) if len(tokens) > 0 else 0
        fps = _to_float(tokens[1]) if len(tokens) > 1 else 0.0
        kbps = tokens[2] if len(tokens) > 2 else ""
        elapsed = _parse_timestamp(tokens[3]) if len(tokens) > 3 else timedelta()
        return ProgressStatus(
            frame=frame,
            fps=fps,
            time=elapsed,
            bitrate=f"{kbps}kbits/s" if _to_float(kbps, -1.0) >= 0 else "",
            raw_text=line,
        )
