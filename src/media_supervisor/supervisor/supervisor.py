"""Process supervisor.

media-supervisor supervisor v0.1.0

Runs one external media tool at a time: spawns it isolated in its own
process group, classifies the redirected output channel line by line,
honours cancellation and timeouts, and reports a single completion status.

Ordering guarantees per run:
- StartedEvent is published before the process is spawned
- line-driven events arrive in stream order on the reader thread
- CompletedEvent is published exactly once, after the process exited, the
  reader drained and the supervisor went back to idle
"""

from __future__ import annotations

import logging
import os
import shlex
import threading
from collections.abc import Callable
from datetime import timedelta
from functools import partial
from typing import Any

import anyio
import anyio.to_thread

from ..config import Config, get_config
from ..parsers import (
    AudioStreamInfo,
    OutputParser,
    ProgressStatus,
    StreamInfo,
    VideoStreamInfo,
    create_parser,
)
from ..runtime import (
    IS_WINDOWS,
    CancellationSignal,
    Deadline,
    LineReader,
    ProcessSpec,
    best_effort,
    launch,
    set_priority,
    wait_for_exit,
)
from .classifier import create_classifier
from .context import RunContext
from .errors import ExecutableNotFoundError, SupervisorBusyError
from .events import (
    CompletedEvent,
    EventBus,
    EventCallback,
    EventKind,
    StartedEvent,
    SupervisorEvent,
)
from .interface import InterfaceManager
from .types import (
    CompletionStatus,
    DisplayMode,
    EncoderApp,
    ProcessOutput,
    ProcessPriority,
    RunOptions,
)

__all__ = ["ProcessSupervisor", "resolve_status"]

logger = logging.getLogger(__name__)


def resolve_status(
    timed_out: bool,
    cancelled: bool,
    returncode: int | None,
) -> CompletionStatus:
    """Map the end state of a run to its completion status.

    Timeout wins over cancellation, which wins over the exit code.
    """
    if timed_out:
        return CompletionStatus.TIMEOUT
    if cancelled:
        return CompletionStatus.CANCELLED
    if returncode == 0:
        return CompletionStatus.SUCCESS
    return CompletionStatus.ERROR


class ProcessSupervisor:
    """Supervises one media tool process at a time.

    Run concurrent jobs with separate instances; a second run() on a busy
    instance raises SupervisorBusyError.

    Example:
        supervisor = ProcessSupervisor(options=RunOptions(timeout=60))
        supervisor.subscribe(on_progress, EventKind.STATUS_UPDATED)
        status = supervisor.run_ffmpeg('-i "in.mkv" -c:v libx264 "out.mp4"')
    """

    def __init__(
        self,
        config: Config | None = None,
        options: RunOptions | None = None,
        parser: OutputParser | None = None,
        event_callback: EventCallback | None = None,
        ui_manager: InterfaceManager | None = None,
    ) -> None:
        """Initialize the supervisor.

        Args:
            config: Paths and timeouts (defaults to the global configuration)
            options: Options applied to every run (defaults to RunOptions())
            parser: Output text parser (defaults to the FFmpeg parser)
            event_callback: Callback subscribed to every notification
            ui_manager: Interface manager (defaults to config.ui_manager)
        """
        self._config = config or get_config()
        self.options = options or RunOptions()
        self._parser = parser or create_parser()
        self._ui_manager = ui_manager or self._config.ui_manager
        self.events = EventBus()
        if event_callback is not None:
            self.events.subscribe(event_callback)

        self._busy = threading.Lock()
        self._ctx: RunContext | None = None
        self._last_completion_status: CompletionStatus | None = None

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(
        self,
        callback: EventCallback,
        kind: EventKind | str | None = None,
    ) -> Callable[[], None]:
        """Register an observer; see EventBus.subscribe."""
        return self.events.subscribe(callback, kind)

    def unsubscribe(self, callback: EventCallback) -> bool:
        return self.events.unsubscribe(callback)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> Config:
        return self._config

    @property
    def ui_manager(self) -> InterfaceManager | None:
        return self._ui_manager

    @property
    def output(self) -> str:
        """Output received from the current or last run."""
        return self._ctx.output if self._ctx else ""

    @property
    def file_duration(self) -> timedelta:
        return self._ctx.file_duration if self._ctx else timedelta()

    @property
    def frame_count(self) -> int:
        return self._ctx.frame_count if self._ctx else self.options.frame_count

    @property
    def file_streams(self) -> list[StreamInfo] | None:
        return self._ctx.file_streams if self._ctx else None

    @property
    def video_stream(self) -> VideoStreamInfo | None:
        return self._ctx.video_stream if self._ctx else None

    @property
    def audio_stream(self) -> AudioStreamInfo | None:
        return self._ctx.audio_stream if self._ctx else None

    @property
    def last_status_received(self) -> ProgressStatus | None:
        return self._ctx.last_status if self._ctx else None

    @property
    def last_completion_status(self) -> CompletionStatus | None:
        return self._last_completion_status

    @property
    def command_with_args(self) -> str:
        return self._ctx.command if self._ctx else ""

    @property
    def work_process(self):
        """Live process handle, None when idle."""
        return self._ctx.process if self._ctx else None

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run(
        self,
        executable: str,
        arguments: str = "",
        encoder: EncoderApp | str = EncoderApp.OTHER,
        nested: bool = False,
        output: ProcessOutput | str = ProcessOutput.ERROR,
    ) -> CompletionStatus:
        """Run a program and block until it ends.

        Args:
            executable: Program path, or a bare name looked up on PATH
            arguments: All arguments as one command-line string
            encoder: Output dialect used to classify lines
            nested: The program hosts child processes (shell pipelines);
                termination targets the whole process group
            output: Channel to redirect and classify

        Returns:
            The completion status

        Raises:
            ExecutableNotFoundError: executable does not exist
            SupervisorBusyError: a run is already in progress
        """
        return self._run(executable, arguments, encoder, nested, output)

    def run_ffmpeg(
        self,
        arguments: str,
        output: ProcessOutput | str = ProcessOutput.ERROR,
    ) -> CompletionStatus:
        """Run the configured FFmpeg with the FFmpeg dialect."""
        return self._run(
            self._config.ffmpeg_path,
            arguments,
            EncoderApp.FFMPEG,
            False,
            output,
            setting="MSV_FFMPEG_PATH",
        )

    def run_avisynth_to_encoder(
        self,
        source: str,
        arguments: str,
        encoder: EncoderApp | str = EncoderApp.FFMPEG,
        encoder_path: str | None = None,
    ) -> CompletionStatus:
        """Pipe a script's raw frames from avs2yuv into an encoder.

        Args:
            source: Path of the source script
            arguments: Encoder arguments
            encoder: Encoder dialect
            encoder_path: Encoder program (defaults to the configured FFmpeg)
        """
        bridge = self._require_executable(self._config.avs2yuv_path, "MSV_AVS2YUV_PATH")
        command = (
            f'"{bridge}" "{source}" -o - | '
            f'"{encoder_path or self._config.ffmpeg_path}" {arguments}'
        )
        return self.run_as_command(command, encoder)

    def run_avisynth(
        self,
        path: str,
        output: ProcessOutput | str = ProcessOutput.ERROR,
    ) -> CompletionStatus:
        """Run a script through avs2yuv alone, discarding the frames.

        The temporary ``<path>.out`` file is deleted afterwards whatever the
        outcome of a run this call started. A call rejected as busy leaves
        it untouched.
        """
        bridge = self._require_executable(self._config.avs2yuv_path, "MSV_AVS2YUV_PATH")
        temp_file = f"{path}.out"
        return self._run(
            bridge, f'"{path}" -o "{temp_file}"', EncoderApp.OTHER, False, output,
            cleanup=partial(best_effort, os.remove, temp_file, description=f"delete {temp_file}"),
        )

    def run_as_command(
        self,
        cmd: str,
        encoder: EncoderApp | str,
        output: ProcessOutput | str = ProcessOutput.ERROR,
    ) -> CompletionStatus:
        """Run cmd through the system shell, allowing pipes and redirections."""
        if IS_WINDOWS:
            shell = os.environ.get("COMSPEC", "cmd.exe")
            arguments = f'/c " {cmd} "'
        else:
            shell = "/bin/sh"
            arguments = f"-c {shlex.quote(cmd)}"
        return self._run(shell, arguments, encoder, True, output)

    async def run_async(
        self,
        executable: str,
        arguments: str = "",
        encoder: EncoderApp | str = EncoderApp.OTHER,
        nested: bool = False,
        output: ProcessOutput | str = ProcessOutput.ERROR,
    ) -> CompletionStatus:
        """Async variant of run(), executed on a worker thread.

        Cancelling the awaiting task cancels the run, waits for the process
        to be stopped and reaped, then re-raises the cancellation.
        """
        cancel_signal = CancellationSignal()
        done = threading.Event()

        def _target() -> CompletionStatus:
            try:
                return self._run(
                    executable, arguments, encoder, nested, output,
                    cancel_signal=cancel_signal,
                )
            finally:
                done.set()

        try:
            return await anyio.to_thread.run_sync(_target, abandon_on_cancel=True)
        except anyio.get_cancelled_exc_class():
            logger.info("Async run cancelled, stopping process")
            cancel_signal.cancel()
            with anyio.CancelScope(shield=True):
                await anyio.to_thread.run_sync(done.wait)
            raise

    def cancel(self) -> None:
        """Request cancellation of the active run; no-op when idle."""
        ctx = self._ctx
        signal = ctx.cancel_signal if ctx else None
        if signal is not None:
            logger.debug(f"[{ctx.run_id}] Cancellation requested")
            signal.cancel()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_executable(self, path: str, setting: str = "") -> str:
        resolved = self._config.resolve_executable(path)
        if resolved is None:
            raise ExecutableNotFoundError(path, setting)
        return resolved

    def _run(
        self,
        executable: str,
        arguments: str,
        encoder: EncoderApp | str,
        nested: bool,
        output: ProcessOutput | str,
        *,
        setting: str = "",
        cancel_signal: CancellationSignal | None = None,
        cleanup: Callable[[], Any] | None = None,
    ) -> CompletionStatus:
        resolved = self._require_executable(executable, setting)
        if not self._busy.acquire(blocking=False):
            raise SupervisorBusyError()

        options = self.options
        try:
            ctx = RunContext(
                options=options,
                encoder=EncoderApp(encoder),
                output_channel=ProcessOutput(output),
                cancel_signal=cancel_signal or CancellationSignal(),
            )
            hidden = options.is_hidden
            spec = ProcessSpec(
                executable=resolved,
                arguments=arguments,
                hidden=hidden,
                capture_stdout=hidden and ctx.output_channel == ProcessOutput.STANDARD,
                capture_stderr=hidden and ctx.output_channel == ProcessOutput.ERROR,
                nested=nested,
                creationflags=options.priority.windows_flag if IS_WINDOWS else 0,
            )
            ctx.command = spec.command_line
            self._ctx = ctx

            status = self._execute(ctx, spec)
            self._last_completion_status = status
        finally:
            if self._ctx is not None:
                self._ctx.process = None
                self._ctx.cancel_signal = None
            if cleanup is not None:
                cleanup()
            self._busy.release()

        logger.info(f"[{ctx.run_id}] Completed with status {status.value}")
        self._publish(CompletedEvent(status=status, run_id=ctx.run_id))

        if status.is_failure and options.display_mode == DisplayMode.ERROR_ONLY:
            self._notify_ui("display_error")
        return status

    def _execute(self, ctx: RunContext, spec: ProcessSpec) -> CompletionStatus:
        options = ctx.options
        if options.display_mode == DisplayMode.INTERFACE:
            self._notify_ui("display")

        self._publish(StartedEvent(command=ctx.command, run_id=ctx.run_id))
        logger.info(f"[{ctx.run_id}] Starting: {ctx.command}")

        try:
            process = launch(spec)
        except (OSError, ValueError) as e:
            # ValueError: unbalanced quotes in the argument string
            logger.error(f"[{ctx.run_id}] Failed to start {spec.executable}: {e}")
            return CompletionStatus.ERROR
        ctx.process = process

        if options.priority != ProcessPriority.NORMAL:
            best_effort(
                set_priority, process, options.priority.nice,
                description=f"set priority {options.priority.value}",
            )

        reader = None
        stream = process.stdout if spec.capture_stdout else process.stderr
        if stream is not None:
            classifier = create_classifier(ctx, self._parser, self._publish)
            reader = LineReader(
                stream,
                classifier.feed,
                classifier.finish,
                name=f"msv-reader-{ctx.run_id}",
            )
            reader.start()

        timed_out = wait_for_exit(
            process,
            ctx.cancel_signal,
            Deadline(options.timeout),
            partial(self._config.soft_kill, process, spec.nested),
            poll_interval=self._config.poll_interval,
        )
        if timed_out:
            best_effort(process.wait, self._config.kill_timeout, description="reap process")

        if reader is not None:
            reader.join(self._config.drain_timeout)
            if reader.is_alive():
                logger.warning(
                    f"[{ctx.run_id}] Output reader still running after "
                    f"{self._config.drain_timeout}s, continuing without it"
                )

        status = resolve_status(timed_out, ctx.cancel_signal.is_cancelled, process.returncode)
        logger.debug(
            f"[{ctx.run_id}] Process ended: returncode={process.returncode} "
            f"timed_out={timed_out} cancelled={ctx.cancel_signal.is_cancelled}"
        )
        return status

    def _publish(self, event: SupervisorEvent) -> None:
        self.events.publish(event)

    def _notify_ui(self, method: str) -> None:
        if self._ui_manager is None:
            return
        try:
            getattr(self._ui_manager, method)(self)
        except Exception:
            logger.exception(f"Interface manager {method}() failed")
