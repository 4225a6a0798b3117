"""Supervisor notifications.

media-supervisor supervisor v0.1.0

Lifecycle notifications raised while a run progresses, and the observer
registry that delivers them.

Order within one run:
    StartedEvent -> DataReceivedEvent / InfoUpdatedEvent / StatusUpdatedEvent ... -> CompletedEvent

CompletedEvent is published exactly once per run, after the process has
exited and all of its output has been classified.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ..parsers import ProgressStatus
from .types import CompletionStatus, ProcessOutput

__all__ = [
    "EventKind",
    "SupervisorEventBase",
    "StartedEvent",
    "DataReceivedEvent",
    "InfoUpdatedEvent",
    "StatusUpdatedEvent",
    "CompletedEvent",
    "SupervisorEvent",
    "EventCallback",
    "EventBus",
]

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Notification kinds."""

    STARTED = "started"
    DATA_RECEIVED = "data_received"
    INFO_UPDATED = "info_updated"
    STATUS_UPDATED = "status_updated"
    COMPLETED = "completed"


def make_event_id(kind: str) -> str:
    """Generate an event id of the form ``{kind}_{short uuid}``."""
    return f"{kind}_{uuid.uuid4().hex[:8]}"


class SupervisorEventBase(BaseModel):
    """Base class for all notifications.

    Attributes:
        event_id: Unique id
        timestamp: Unix timestamp (seconds)
        kind: Notification kind
        run_id: Id of the run that raised it
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    event_id: str = Field(default_factory=lambda: make_event_id("event"))
    timestamp: float = Field(default_factory=time.time)
    kind: EventKind
    run_id: str = ""


class StartedEvent(SupervisorEventBase):
    """Raised right before the process is spawned."""

    kind: Literal[EventKind.STARTED] = EventKind.STARTED
    command: str = ""


class DataReceivedEvent(SupervisorEventBase):
    """One raw output line, republished verbatim."""

    kind: Literal[EventKind.DATA_RECEIVED] = EventKind.DATA_RECEIVED
    line: str
    output: ProcessOutput = ProcessOutput.ERROR


class InfoUpdatedEvent(SupervisorEventBase):
    """Duration and stream list were (re)parsed; read them from the supervisor."""

    kind: Literal[EventKind.INFO_UPDATED] = EventKind.INFO_UPDATED


class StatusUpdatedEvent(SupervisorEventBase):
    """A progress line was parsed."""

    kind: Literal[EventKind.STATUS_UPDATED] = EventKind.STATUS_UPDATED
    status: ProgressStatus


class CompletedEvent(SupervisorEventBase):
    """The run finished; carries its final status."""

    kind: Literal[EventKind.COMPLETED] = EventKind.COMPLETED
    status: CompletionStatus


SupervisorEvent = Union[
    StartedEvent,
    DataReceivedEvent,
    InfoUpdatedEvent,
    StatusUpdatedEvent,
    CompletedEvent,
]

# Type alias: notification callback
EventCallback = Callable[[SupervisorEvent], None]


class EventBus:
    """Observer registry.

    Callbacks run synchronously on the thread that publishes the event:
    the caller's thread for started/completed, the output reader thread for
    line-driven events. A failing callback is logged and skipped, it never
    interrupts the run.

    Example:
        bus = EventBus()
        unsubscribe = bus.subscribe(print, EventKind.STATUS_UPDATED)
        ...
        unsubscribe()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[tuple[EventCallback, EventKind | None]] = []

    def subscribe(
        self,
        callback: EventCallback,
        kind: EventKind | str | None = None,
    ) -> Callable[[], None]:
        """Register a callback.

        Args:
            callback: Function receiving events
            kind: Only deliver this kind (None = all kinds)

        Returns:
            A function removing this registration
        """
        if isinstance(kind, str):
            kind = EventKind(kind)
        entry = (callback, kind)
        with self._lock:
            self._subscribers.append(entry)

        def _unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return _unsubscribe

    def unsubscribe(self, callback: EventCallback) -> bool:
        """Remove every registration of callback.

        Returns:
            True if anything was removed
        """
        with self._lock:
            before = len(self._subscribers)
            self._subscribers = [
                entry for entry in self._subscribers if entry[0] != callback
            ]
            return len(self._subscribers) != before

    def publish(self, event: SupervisorEvent) -> None:
        """Deliver event to every matching subscriber, in registration order."""
        with self._lock:
            targets = [cb for cb, kind in self._subscribers if kind is None or kind == event.kind]
        for callback in targets:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Event callback failed for {event.kind.value}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
