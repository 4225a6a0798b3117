"""Process supervisor module.

media-supervisor supervisor v0.1.0

Runs FFmpeg, x264 and other media tools as isolated child processes and
turns their console output into structured notifications.

Basic usage:
    from media_supervisor.supervisor import ProcessSupervisor, RunOptions

    supervisor = ProcessSupervisor(options=RunOptions(timeout=600))
    status = supervisor.run_ffmpeg('-i "in.mkv" -c:v libx264 "out.mp4"')
    print(status, supervisor.frame_count)

Progress notifications:
    from media_supervisor.supervisor import EventKind

    supervisor.subscribe(
        lambda event: print(event.status.frame),
        EventKind.STATUS_UPDATED,
    )

Cancellation from another thread:
    supervisor.cancel()

Factory:
    from media_supervisor.supervisor import create_supervisor

    supervisor = create_supervisor(timeout=60, priority="below_normal")
"""

from __future__ import annotations

__version__ = "0.1.0"

from typing import Any

from ..config import Config
from .classifier import (
    X264_PROGRESS_WIDTH,
    FFmpegClassifier,
    OpaqueClassifier,
    OutputClassifier,
    X264Classifier,
    create_classifier,
)
from .context import RunContext
from .errors import ExecutableNotFoundError, SupervisorBusyError, SupervisorError
from .events import (
    CompletedEvent,
    DataReceivedEvent,
    EventBus,
    EventCallback,
    EventKind,
    InfoUpdatedEvent,
    StartedEvent,
    StatusUpdatedEvent,
    SupervisorEvent,
)
from .interface import InterfaceManager, LoggingInterfaceManager
from .supervisor import ProcessSupervisor, resolve_status
from .types import (
    CompletionStatus,
    DisplayMode,
    EncoderApp,
    ProcessOutput,
    ProcessPriority,
    RunOptions,
)

__all__ = [
    # Version
    "__version__",
    # Types
    "CompletionStatus",
    "ProcessOutput",
    "EncoderApp",
    "DisplayMode",
    "ProcessPriority",
    "RunOptions",
    "RunContext",
    # Errors
    "SupervisorError",
    "ExecutableNotFoundError",
    "SupervisorBusyError",
    # Events
    "EventKind",
    "StartedEvent",
    "DataReceivedEvent",
    "InfoUpdatedEvent",
    "StatusUpdatedEvent",
    "CompletedEvent",
    "SupervisorEvent",
    "EventCallback",
    "EventBus",
    # Classifiers
    "OutputClassifier",
    "FFmpegClassifier",
    "X264Classifier",
    "OpaqueClassifier",
    "create_classifier",
    "X264_PROGRESS_WIDTH",
    # Interface
    "InterfaceManager",
    "LoggingInterfaceManager",
    # Supervisor
    "ProcessSupervisor",
    "resolve_status",
    "create_supervisor",
]


def create_supervisor(
    config: Config | None = None,
    event_callback: EventCallback | None = None,
    **options: Any,
) -> ProcessSupervisor:
    """Create a supervisor.

    Args:
        config: Configuration (defaults to the global configuration)
        event_callback: Callback subscribed to every notification
        **options: RunOptions fields (display_mode, priority, timeout, frame_count)

    Returns:
        A ProcessSupervisor instance
    """
    return ProcessSupervisor(
        config=config,
        options=RunOptions(**options),
        event_callback=event_callback,
    )
