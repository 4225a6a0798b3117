"""media-supervisor - supervised execution of FFmpeg and other media tools.

Environment variables:
    MSV_FFMPEG_PATH: FFmpeg executable (default "ffmpeg")
    MSV_AVS2YUV_PATH: avs2yuv executable (default "avs2yuv")
    MSV_POLL_INTERVAL: exit-wait poll interval (default 0.5s)
    MSV_LOG_DEBUG: write DEBUG logs to a temp file (default false)

Usage:
    media-supervisor ffmpeg -- -i in.mkv out.mp4
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
