"""media-supervisor command line entry point.

Runs one media tool under supervision, renders its progress on stderr and
maps the completion status to the exit code:

    0   success
    1   error (non-zero exit, spawn failure, missing executable)
    124 timeout
    130 cancelled (SIGINT)

Usage:
    media-supervisor [options] ffmpeg -- -i in.mkv -c:v libx264 out.mp4
    media-supervisor [options] exec --encoder x264 x264 --output out.264 in.y4m
    media-supervisor [options] avs script.avs
    media-supervisor [options] avs-encode script.avs -i - -c:v libx264 out.mp4
"""

from __future__ import annotations

import argparse
import logging
import shlex
import signal
import subprocess
import sys
from collections.abc import Sequence
from typing import TextIO

from . import __version__
from .config import get_config
from .runtime import IS_WINDOWS
from .supervisor import (
    CompletionStatus,
    DisplayMode,
    EncoderApp,
    EventKind,
    ExecutableNotFoundError,
    InfoUpdatedEvent,
    LoggingInterfaceManager,
    ProcessOutput,
    ProcessPriority,
    ProcessSupervisor,
    RunOptions,
    StatusUpdatedEvent,
    SupervisorError,
)

__all__ = ["EXIT_CODES", "build_parser", "run_cli", "main"]

logger = logging.getLogger(__name__)

EXIT_CODES: dict[CompletionStatus, int] = {
    CompletionStatus.SUCCESS: 0,
    CompletionStatus.ERROR: 1,
    CompletionStatus.TIMEOUT: 124,
    CompletionStatus.CANCELLED: 130,
}


def _join_arguments(args: Sequence[str]) -> str:
    """Join argv items back into one argument string."""
    if IS_WINDOWS:
        return subprocess.list2cmdline(list(args))
    return shlex.join(args)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="media-supervisor",
        description="Run a media tool under supervision with progress, timeout and cancellation.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--timeout", type=float, default=0.0,
        help="Stop the process after this many seconds (0 = no limit)",
    )
    parser.add_argument(
        "--frame-count", type=int, default=0,
        help="Known frame count of the input (0 = estimate from duration)",
    )
    parser.add_argument(
        "--priority", choices=[p.value for p in ProcessPriority],
        default=ProcessPriority.NORMAL.value,
    )
    parser.add_argument(
        "--display", choices=[m.value for m in DisplayMode],
        default=DisplayMode.ERROR_ONLY.value,
        help="native = leave output on the console, error_only = report failures",
    )
    parser.add_argument(
        "--stdout", action="store_true",
        help="Classify standard output instead of standard error",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not render progress")

    sub = parser.add_subparsers(dest="command", required=True)

    p_ffmpeg = sub.add_parser("ffmpeg", help="Run the configured FFmpeg")
    # Options for FFmpeg itself follow "--"
    p_ffmpeg.add_argument("args", nargs="*")

    p_exec = sub.add_parser("exec", help="Run any program")
    p_exec.add_argument(
        "--encoder", choices=[e.value for e in EncoderApp], default=EncoderApp.OTHER.value,
    )
    p_exec.add_argument("program")
    p_exec.add_argument("args", nargs=argparse.REMAINDER)

    p_avs = sub.add_parser("avs", help="Run a script through avs2yuv, discarding frames")
    p_avs.add_argument("script")

    p_encode = sub.add_parser("avs-encode", help="Pipe a script through avs2yuv into an encoder")
    p_encode.add_argument(
        "--encoder", choices=[e.value for e in EncoderApp], default=EncoderApp.FFMPEG.value,
    )
    p_encode.add_argument("--encoder-path", default=None)
    p_encode.add_argument("script")
    p_encode.add_argument("args", nargs=argparse.REMAINDER)

    return parser


class ProgressRenderer:
    """Redraws one progress line on a text stream."""

    def __init__(self, supervisor: ProcessSupervisor, stream: TextIO, debug: bool = False) -> None:
        self._supervisor = supervisor
        self._stream = stream
        self._debug = debug
        self._drawn = False

    def on_info(self, event: InfoUpdatedEvent) -> None:
        if not self._debug:
            return
        self._stream.write(f"Duration: {self._supervisor.file_duration}\n")
        for stream in self._supervisor.file_streams or ():
            self._stream.write(f"  #{stream.index} {stream.stream_type.value}: {stream.format}\n")

    def on_status(self, event: StatusUpdatedEvent) -> None:
        status = event.status
        total = self._supervisor.frame_count
        frames = f"{status.frame}/{total}" if total else f"{status.frame}"
        self._stream.write(
            f"\rframe {frames}  fps {status.fps:g}  time {status.time}  "
            f"bitrate {status.bitrate or '-'}  "
        )
        self._stream.flush()
        self._drawn = True

    def close(self) -> None:
        if self._drawn:
            self._stream.write("\n")
            self._stream.flush()


def run_cli(argv: Sequence[str] | None = None, stream: TextIO | None = None) -> int:
    """Parse argv, run the requested job and return the exit code."""
    args = build_parser().parse_args(argv)
    config = get_config()
    out = stream or sys.stderr

    options = RunOptions(
        display_mode=args.display,
        priority=args.priority,
        timeout=args.timeout,
        frame_count=args.frame_count,
    )
    supervisor = ProcessSupervisor(
        config=config,
        options=options,
        ui_manager=LoggingInterfaceManager(),
    )
    output = ProcessOutput.STANDARD if args.stdout else ProcessOutput.ERROR

    renderer = None
    if not args.quiet:
        renderer = ProgressRenderer(supervisor, out, debug=config.debug)
        supervisor.subscribe(renderer.on_status, EventKind.STATUS_UPDATED)
        supervisor.subscribe(renderer.on_info, EventKind.INFO_UPDATED)

    def _on_sigint(signum, frame) -> None:
        logger.info("SIGINT received, cancelling run")
        supervisor.cancel()

    previous_handler = signal.signal(signal.SIGINT, _on_sigint)
    try:
        if args.command == "ffmpeg":
            status = supervisor.run_ffmpeg(_join_arguments(args.args), output=output)
        elif args.command == "exec":
            status = supervisor.run(
                args.program, _join_arguments(args.args),
                encoder=args.encoder, output=output,
            )
        elif args.command == "avs":
            status = supervisor.run_avisynth(args.script, output=output)
        else:
            status = supervisor.run_avisynth_to_encoder(
                args.script, _join_arguments(args.args),
                encoder=args.encoder, encoder_path=args.encoder_path,
            )
    except ExecutableNotFoundError as e:
        logger.error(str(e))
        return EXIT_CODES[CompletionStatus.ERROR]
    except SupervisorError as e:
        logger.error(f"Run failed: {e}")
        return EXIT_CODES[CompletionStatus.ERROR]
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        if renderer is not None:
            renderer.close()

    logger.info(f"Finished with status {status.value}")
    return EXIT_CODES[status]


def main() -> None:
    """Main entry point."""
    config = get_config()

    log_handlers: list[logging.Handler] = []
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if config.log_debug and config.log_file:
        # Debug mode: everything goes to a temp file
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # Root logger (third-party libraries) stays at WARNING
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("media_supervisor").setLevel(log_level)
    if config.log_debug and config.log_file:
        logger.info(f"Debug log: {config.log_file}")

    sys.exit(run_cli())


if __name__ == "__main__":
    main()
