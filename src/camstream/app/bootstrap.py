"""Bootstrap helpers for the camstream Flask application."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from flask import Flask

from ..config import DEFAULT_LOG_DIR, build_default_config
from ..logging_config import configure_logging
from ..utils.coerce import to_bool


def load_configuration(app: Flask, overrides: Optional[Mapping[str, Any]] = None) -> None:
    """Populate default configuration values, then apply ``overrides``."""

    app.config.from_mapping(build_default_config())
    if overrides:
        app.config.from_mapping(dict(overrides))


def init_logging(app: Flask) -> Optional[Path]:
    """Configure root logging unless the app opted out."""

    if not to_bool(app.config.get("CAMSTREAM_CONFIGURE_LOGGING"), default=True):
        return None
    return configure_logging(
        "camstream",
        Path(app.config.get("CAMSTREAM_LOG_DIR") or DEFAULT_LOG_DIR),
        level=app.config.get("CAMSTREAM_LOG_LEVEL"),
    )


__all__ = ["init_logging", "load_configuration"]
