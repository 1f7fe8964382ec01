"""Custom exceptions raised by the stream orchestration engine."""
from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING, Optional

from .utils.formatting import format_bytes

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .engine.sessions import Session


class StreamEngineError(RuntimeError):
    """Base error for the camstream package."""

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    error_label = "Stream engine error"


class NotFoundError(StreamEngineError):
    """Raised when a device or session id is unknown."""

    status_code = HTTPStatus.NOT_FOUND
    error_label = "Not found"


class DeviceNotFoundError(NotFoundError):
    error_label = "Camera not found"

    def __init__(self, device_id: str) -> None:
        super().__init__(f"Camera not found: {device_id}")
        self.device_id = device_id


class SessionNotFoundError(NotFoundError):
    error_label = "Stream not found"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Stream not found: {session_id}")
        self.session_id = session_id


class UnavailableError(StreamEngineError):
    """Raised when a device is reserved by another session or disconnected."""

    status_code = HTTPStatus.CONFLICT
    error_label = "Camera not available"


class DeviceUnavailableError(UnavailableError):
    def __init__(self, device_id: str, status: Optional[str] = None) -> None:
        detail = f" (status: {status})" if status else ""
        super().__init__(f"Camera is not available: {device_id}{detail}")
        self.device_id = device_id
        self.status = status


class InsufficientStorageError(StreamEngineError):
    """Raised by the preflight disk check before any resource is committed."""

    status_code = HTTPStatus.INSUFFICIENT_STORAGE
    error_label = "Insufficient storage"

    def __init__(self, available: int, required: int) -> None:
        super().__init__(
            f"Insufficient disk space: {format_bytes(available)} available, "
            f"{format_bytes(required)} required"
        )
        self.available = int(available)
        self.required = int(required)


class StartTimeoutError(StreamEngineError):
    """Raised when the encoder produced no output within the readiness bound."""

    status_code = HTTPStatus.GATEWAY_TIMEOUT
    error_label = "Stream start timed out"

    def __init__(
        self,
        session_id: str,
        timeout: float,
        *,
        session: Optional["Session"] = None,
    ) -> None:
        super().__init__(
            f"Stream {session_id} failed to start: no output within {timeout:g}s"
        )
        self.session_id = session_id
        self.timeout = timeout
        self.session = session


class StartCancelledError(StreamEngineError):
    """Raised by ``start`` when the session was stopped before it became ready."""

    status_code = HTTPStatus.CONFLICT
    error_label = "Stream start cancelled"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Stream {session_id} was stopped before it became ready")
        self.session_id = session_id


class ProcessSpawnError(StreamEngineError):
    """Raised when the operating system refuses to launch the encoder."""

    error_label = "Failed to launch encoder"


class ProcessCrashError(StreamEngineError):
    """Raised when the encoder exits unexpectedly."""

    error_label = "Encoder process crashed"

    def __init__(self, message: str, *, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class InvalidStateError(StreamEngineError):
    """Raised when an operation does not fit the current lifecycle state."""

    status_code = HTTPStatus.CONFLICT
    error_label = "Invalid state"


class DeviceEnumerationError(StreamEngineError):
    """Raised when the platform device listing cannot be obtained."""

    error_label = "Failed to enumerate cameras"


__all__ = [
    "DeviceEnumerationError",
    "DeviceNotFoundError",
    "DeviceUnavailableError",
    "InsufficientStorageError",
    "InvalidStateError",
    "NotFoundError",
    "ProcessCrashError",
    "ProcessSpawnError",
    "SessionNotFoundError",
    "StartCancelledError",
    "StartTimeoutError",
    "StreamEngineError",
    "UnavailableError",
]
