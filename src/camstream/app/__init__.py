"""camstream application factory."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import Flask

from ..engine import StreamCoordinator
from .bootstrap import init_logging, load_configuration
from .extensions import (
    configure_cors,
    init_status_broadcaster,
    init_stream_coordinator,
    register_blueprints,
)


def create_app(
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    coordinator: Optional[StreamCoordinator] = None,
) -> Flask:
    """Create and configure the camstream Flask application."""

    app = Flask(__name__)
    load_configuration(app, overrides)
    init_logging(app)

    status_broadcaster = None if coordinator is not None else init_status_broadcaster(app)
    init_stream_coordinator(app, status_broadcaster=status_broadcaster, coordinator=coordinator)

    register_blueprints(app)
    configure_cors(app, app.config.get("CAMSTREAM_CORS_ORIGIN", "*"))
    return app


__all__ = ["create_app"]
