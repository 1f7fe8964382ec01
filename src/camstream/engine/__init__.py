"""Stream orchestration engine."""
from __future__ import annotations

from .cleanup import CleanupScheduler
from .coordinator import StreamCoordinator
from .housekeeping import HousekeepingLoop
from .output import OutputLayout
from .readiness import ReadinessMonitor
from .sessions import Session, SessionStatus, SessionStore
from .settings import EngineSettings
from .status import SessionStatusBroadcaster

__all__ = [
    "CleanupScheduler",
    "EngineSettings",
    "HousekeepingLoop",
    "OutputLayout",
    "ReadinessMonitor",
    "Session",
    "SessionStatus",
    "SessionStatusBroadcaster",
    "SessionStore",
    "StreamCoordinator",
]
