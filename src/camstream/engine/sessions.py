"""Session records and their lifecycle transitions."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from threading import Lock
from typing import Any, Callable, Optional, Union

from ..encoder.options import StreamOptions
from ..exceptions import InvalidStateError, SessionNotFoundError

LOGGER = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (SessionStatus.STOPPED, SessionStatus.ERROR)

    @property
    def active(self) -> bool:
        return self in (SessionStatus.STARTING, SessionStatus.RUNNING)


_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.STARTING: frozenset(
        {SessionStatus.RUNNING, SessionStatus.ERROR, SessionStatus.STOPPING, SessionStatus.STOPPED}
    ),
    SessionStatus.RUNNING: frozenset(
        {SessionStatus.STOPPING, SessionStatus.STOPPED, SessionStatus.ERROR}
    ),
    SessionStatus.STOPPING: frozenset({SessionStatus.STOPPED}),
    SessionStatus.STOPPED: frozenset(),
    SessionStatus.ERROR: frozenset(),
}

StatusFilter = Union[None, str, SessionStatus]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Session:
    """Immutable snapshot of a publishing session."""

    id: str
    device_id: str
    status: SessionStatus
    created_at: datetime
    updated_at: datetime
    resolution: str = "1280x720"
    framerate: int = 30
    video_bitrate: Optional[str] = None
    audio_bitrate: Optional[str] = None
    output_url: Optional[str] = None
    started_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status.active

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "camera_id": self.device_id,
            "status": self.status.value,
            "quality": {
                "resolution": self.resolution,
                "framerate": self.framerate,
                "bitrate": self.video_bitrate,
                "audio_bitrate": self.audio_bitrate,
            },
            "output_url": self.output_url,
            "started_at": _isoformat(self.started_at),
            "error": self.error,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class SessionStore:
    """Own every session record and enforce forward-only status changes.

    ``starting`` may move to any later status, ``running`` to ``stopping``,
    ``stopped`` or ``error`` and ``stopping`` only to ``stopped``. ``stopped``
    and ``error`` are final. Re-applying the current status is a no-op.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = Lock()
        self._sessions: dict[str, Session] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def create(
        self,
        device_id: str,
        stream: Optional[StreamOptions] = None,
        *,
        session_id: Optional[str] = None,
    ) -> Session:
        stream = stream or StreamOptions()
        now = self._clock()
        session = Session(
            id=session_id or uuid.uuid4().hex,
            device_id=device_id,
            status=SessionStatus.STARTING,
            created_at=now,
            updated_at=now,
            resolution=stream.resolution,
            framerate=stream.framerate,
            video_bitrate=stream.video_bitrate,
            audio_bitrate=stream.audio_bitrate,
        )
        with self._lock:
            if session.id in self._sessions:
                raise InvalidStateError(f"Session {session.id} already exists")
            self._sessions[session.id] = session
        LOGGER.debug("Created session %s for camera %s", session.id, device_id)
        return session

    def transition(
        self,
        session_id: str,
        status: SessionStatus,
        *,
        error: Optional[str] = None,
        output_url: Optional[str] = None,
    ) -> Session:
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                raise SessionNotFoundError(session_id)
            if current.status is status:
                return current
            if status not in _TRANSITIONS[current.status]:
                raise InvalidStateError(
                    f"Session {session_id} cannot move from {current.status.value} to {status.value}"
                )
            now = self._clock()
            changes: dict[str, Any] = {"status": status, "updated_at": now}
            if status is SessionStatus.RUNNING:
                changes["started_at"] = now
                if output_url is not None:
                    changes["output_url"] = output_url
            if error is not None:
                changes["error"] = error
            updated = replace(current, **changes)
            self._sessions[session_id] = updated
        LOGGER.info("Session %s: %s -> %s", session_id, current.status.value, status.value)
        return updated

    def mark_running(self, session_id: str, output_url: str) -> Session:
        return self.transition(session_id, SessionStatus.RUNNING, output_url=output_url)

    def mark_stopping(self, session_id: str) -> Session:
        return self.transition(session_id, SessionStatus.STOPPING)

    def mark_stopped(self, session_id: str) -> Session:
        return self.transition(session_id, SessionStatus.STOPPED)

    def mark_error(self, session_id: str, message: str) -> Session:
        return self.transition(session_id, SessionStatus.ERROR, error=message)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def evict_inactive(self, max_age: float, *, now: Optional[datetime] = None) -> list[str]:
        """Drop ``stopped``/``error`` records not updated within ``max_age`` seconds."""

        cutoff = (now or self._clock()) - timedelta(seconds=max(0.0, max_age))
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.status.terminal and session.updated_at <= cutoff
            ]
            for session_id in expired:
                del self._sessions[session_id]
        if expired:
            LOGGER.info("Evicted %d finished session record(s)", len(expired))
        return expired

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list(self, status: StatusFilter = None) -> list[Session]:
        """Return sessions, optionally filtered.

        ``status`` may be ``None``, ``"active"`` (starting or running) or a
        :class:`SessionStatus` / its string value.
        """

        with self._lock:
            sessions = list(self._sessions.values())
        if status is None:
            return sessions
        if status == "active":
            return [session for session in sessions if session.status.active]
        wanted = SessionStatus(status)
        return [session for session in sessions if session.status is wanted]

    def ids(self) -> set[str]:
        with self._lock:
            return set(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions


__all__ = ["Session", "SessionStatus", "SessionStore", "StatusFilter"]
