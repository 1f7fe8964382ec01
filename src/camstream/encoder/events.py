"""Per-process lifecycle event channel."""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from .progress import EncoderProgress

LOGGER = logging.getLogger(__name__)


class EventKind(str, Enum):
    STARTED = "started"
    PROGRESS = "progress"
    OUTPUT = "output"
    STOPPED = "stopped"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (EventKind.STOPPED, EventKind.ERROR)


TERMINAL_KINDS = frozenset({EventKind.STOPPED, EventKind.ERROR})


@dataclass(frozen=True)
class ProcessEvent:
    kind: EventKind
    session_id: str
    returncode: Optional[int] = None
    message: Optional[str] = None
    progress: Optional[EncoderProgress] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Subscription:
    """Queue of events delivered to one subscriber."""

    def __init__(self, channel: "EventChannel", kinds: Optional[frozenset[EventKind]]) -> None:
        self._channel = channel
        self._kinds = kinds
        self._queue: "queue.Queue[ProcessEvent]" = queue.Queue()
        self._closed = False

    def accepts(self, kind: EventKind) -> bool:
        return self._kinds is None or kind in self._kinds

    def _deliver(self, event: ProcessEvent) -> None:
        if not self._closed and self.accepts(event.kind):
            self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> Optional[ProcessEvent]:
        """Block for the next event; ``None`` when ``timeout`` elapses."""

        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[ProcessEvent]:
        events: list[ProcessEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel._unsubscribe(self)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class EventChannel:
    """Fan events out to independent subscriber queues.

    At most one terminal event (``stopped`` or ``error``) is accepted; it is
    kept and replayed to anyone subscribing afterwards. Everything published
    after it is dropped.
    """

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._lock = threading.Lock()
        self._subscribers: list[Subscription] = []
        self._terminal: Optional[ProcessEvent] = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def terminal_event(self) -> Optional[ProcessEvent]:
        with self._lock:
            return self._terminal

    def subscribe(self, kinds: Optional[Iterable[EventKind]] = None) -> Subscription:
        selected = frozenset(kinds) if kinds is not None else None
        with self._lock:
            subscription = Subscription(self, selected)
            self._subscribers.append(subscription)
            if self._terminal is not None:
                subscription._deliver(self._terminal)
        return subscription

    def publish(self, event: ProcessEvent) -> bool:
        """Deliver ``event``; returns ``False`` when the channel already ended."""

        with self._lock:
            if self._terminal is not None:
                if event.kind.terminal:
                    LOGGER.debug(
                        "Dropping %s event for %s; already ended with %s",
                        event.kind.value,
                        self._session_id,
                        self._terminal.kind.value,
                    )
                return False
            if event.kind.terminal:
                self._terminal = event
            subscribers = list(self._subscribers)
            for subscription in subscribers:
                subscription._deliver(event)
        return True

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscribers.remove(subscription)
            except ValueError:
                pass

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


__all__ = [
    "EventChannel",
    "EventKind",
    "ProcessEvent",
    "Subscription",
    "TERMINAL_KINDS",
]
