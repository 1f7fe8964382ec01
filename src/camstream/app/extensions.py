"""Extension wiring for the camstream Flask application."""
from __future__ import annotations

import atexit
import logging
import signal
from typing import Iterable, Optional

from flask import Flask, Response, request

from ..devices.enumeration import FFmpegDeviceEnumerator
from ..engine import EngineSettings, SessionStatusBroadcaster, StreamCoordinator
from ..exceptions import DeviceEnumerationError
from ..routes import api_bp, media_bp
from ..utils.coerce import coerce_int, to_bool

LOGGER = logging.getLogger(__name__)


def init_status_broadcaster(app: Flask) -> Optional[SessionStatusBroadcaster]:
    redis_url = app.config.get("CAMSTREAM_STATUS_REDIS_URL")
    if not redis_url:
        LOGGER.info("No status Redis URL configured; session broadcasting disabled")
        return None
    broadcaster = SessionStatusBroadcaster(
        redis_url=redis_url,
        prefix=app.config.get("CAMSTREAM_STATUS_PREFIX", "camstream"),
        channel=app.config.get("CAMSTREAM_STATUS_CHANNEL"),
        ttl_seconds=coerce_int(app.config.get("CAMSTREAM_STATUS_TTL_SECONDS"), 3600),
    )
    if not broadcaster.available:
        LOGGER.warning(
            "Session status broadcasting unavailable: %s",
            broadcaster.last_error or "unknown error",
        )
    app.extensions["session_status_broadcaster"] = broadcaster
    return broadcaster


def init_stream_coordinator(
    app: Flask,
    *,
    status_broadcaster: Optional[SessionStatusBroadcaster] = None,
    coordinator: Optional[StreamCoordinator] = None,
) -> StreamCoordinator:
    if coordinator is None:
        settings = EngineSettings.from_config(app.config)
        coordinator = StreamCoordinator(
            settings,
            enumerator=FFmpegDeviceEnumerator(settings.ffmpeg_path),
            broadcaster=status_broadcaster,
        )
        try:
            devices = coordinator.refresh_devices()
        except DeviceEnumerationError as exc:
            LOGGER.warning("Initial camera discovery failed: %s", exc)
        else:
            LOGGER.info("Discovered %d camera(s)", len(devices))
    app.extensions["stream_coordinator"] = coordinator
    atexit.register(coordinator.shutdown)

    if to_bool(app.config.get("CAMSTREAM_START_HOUSEKEEPING"), default=True):
        coordinator.start_housekeeping()
    return coordinator


def install_shutdown_handlers(
    coordinator: StreamCoordinator,
    signals: Iterable[int] = (signal.SIGINT, signal.SIGTERM),
) -> None:
    """Kill every encoder before the process exits on ``signals``.

    Must be called from the main thread.
    """

    def _signal_handler(signum: int, _frame: object) -> None:
        LOGGER.info("Signal %s received; shutting down stream coordinator", signum)
        coordinator.shutdown()
        raise SystemExit(0)

    for signum in signals:
        signal.signal(signum, _signal_handler)


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(api_bp)
    app.register_blueprint(media_bp)


def configure_cors(app: Flask, cors_origin: str | None) -> None:
    allowed_default = cors_origin or "*"

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        origin = request.headers.get("Origin")
        allowed_origin = allowed_default
        if allowed_default == "*" and origin:
            allowed_origin = origin
        response.headers["Access-Control-Allow-Origin"] = allowed_origin
        response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type, Range")
        response.headers.setdefault("Access-Control-Allow-Methods", "GET,POST,DELETE,OPTIONS")
        if origin:
            response.headers.add("Vary", "Origin")
        return response


__all__ = [
    "configure_cors",
    "init_status_broadcaster",
    "init_stream_coordinator",
    "install_shutdown_handlers",
    "register_blueprints",
]
