"""Configuration helpers for the camstream service."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

from .utils.coerce import coerce_float, coerce_int, to_bool


def _load_dotenv() -> None:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)


_load_dotenv()


def _env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return None


DEFAULT_FFMPEG_PATH = _env("CAMSTREAM_FFMPEG_PATH", "FFMPEG_PATH") or "ffmpeg"
DEFAULT_OUTPUT_DIR = _env("CAMSTREAM_OUTPUT_DIR", "HLS_DIR") or str(Path.cwd() / "hls")
DEFAULT_HOST = _env("CAMSTREAM_HOST") or "0.0.0.0"
DEFAULT_PORT = coerce_int(_env("PORT"), 3001)
DEFAULT_CORS_ORIGIN = _env("CAMSTREAM_CORS_ORIGIN") or "*"
DEFAULT_LOG_DIR = _env("CAMSTREAM_LOG_DIR") or str(Path.cwd() / "logs")
DEFAULT_LOG_LEVEL = _env("CAMSTREAM_LOG_LEVEL") or "INFO"

DEFAULT_START_TIMEOUT_SECONDS = coerce_float(_env("CAMSTREAM_START_TIMEOUT_SECONDS"), 15.0)
DEFAULT_READINESS_INTERVAL_SECONDS = coerce_float(_env("CAMSTREAM_READINESS_INTERVAL_SECONDS"), 0.5)
DEFAULT_PROCESS_START_GRACE_SECONDS = coerce_float(
    _env("CAMSTREAM_PROCESS_START_GRACE_SECONDS"),
    10.0,
)
DEFAULT_STOP_GRACE_SECONDS = coerce_float(_env("CAMSTREAM_STOP_GRACE_SECONDS"), 5.0)
DEFAULT_KILL_GRACE_SECONDS = coerce_float(_env("CAMSTREAM_KILL_GRACE_SECONDS"), 2.0)
DEFAULT_ASSUME_STARTED_ON_TIMEOUT = to_bool(
    _env("CAMSTREAM_ASSUME_STARTED_ON_TIMEOUT"),
    default=True,
)

DEFAULT_CLEANUP_DELAY_SECONDS = coerce_float(_env("CAMSTREAM_CLEANUP_DELAY_SECONDS"), 30.0)
DEFAULT_SESSION_RETENTION_SECONDS = coerce_float(_env("CAMSTREAM_SESSION_RETENTION_SECONDS"), 3600.0)
DEFAULT_ORPHAN_SWEEP_SECONDS = coerce_float(_env("CAMSTREAM_ORPHAN_SWEEP_SECONDS"), 300.0)
DEFAULT_HOUSEKEEPING_INTERVAL_SECONDS = coerce_float(
    _env("CAMSTREAM_HOUSEKEEPING_INTERVAL_SECONDS"),
    1.0,
)
DEFAULT_MIN_FREE_MB = coerce_int(_env("CAMSTREAM_MIN_FREE_MB"), 500)

DEFAULT_STATUS_REDIS_URL = _env("CAMSTREAM_STATUS_REDIS_URL", "REDIS_URL")
DEFAULT_STATUS_PREFIX = _env("CAMSTREAM_STATUS_PREFIX") or "camstream"
DEFAULT_STATUS_CHANNEL = _env("CAMSTREAM_STATUS_CHANNEL") or "camstream:sessions"
DEFAULT_STATUS_TTL_SECONDS = coerce_int(_env("CAMSTREAM_STATUS_TTL_SECONDS"), 3600)


def build_default_config() -> Dict[str, Any]:
    """Return the base configuration mapping for the service."""

    cfg: Dict[str, Any] = {
        "CAMSTREAM_FFMPEG_PATH": DEFAULT_FFMPEG_PATH,
        "CAMSTREAM_OUTPUT_DIR": DEFAULT_OUTPUT_DIR,
        "CAMSTREAM_HOST": DEFAULT_HOST,
        "PORT": DEFAULT_PORT,
        "CAMSTREAM_CORS_ORIGIN": DEFAULT_CORS_ORIGIN,
        "CAMSTREAM_LOG_DIR": DEFAULT_LOG_DIR,
        "CAMSTREAM_LOG_LEVEL": DEFAULT_LOG_LEVEL,
        "CAMSTREAM_START_TIMEOUT_SECONDS": DEFAULT_START_TIMEOUT_SECONDS,
        "CAMSTREAM_READINESS_INTERVAL_SECONDS": DEFAULT_READINESS_INTERVAL_SECONDS,
        "CAMSTREAM_PROCESS_START_GRACE_SECONDS": DEFAULT_PROCESS_START_GRACE_SECONDS,
        "CAMSTREAM_STOP_GRACE_SECONDS": DEFAULT_STOP_GRACE_SECONDS,
        "CAMSTREAM_KILL_GRACE_SECONDS": DEFAULT_KILL_GRACE_SECONDS,
        "CAMSTREAM_ASSUME_STARTED_ON_TIMEOUT": DEFAULT_ASSUME_STARTED_ON_TIMEOUT,
        "CAMSTREAM_CLEANUP_DELAY_SECONDS": DEFAULT_CLEANUP_DELAY_SECONDS,
        "CAMSTREAM_SESSION_RETENTION_SECONDS": DEFAULT_SESSION_RETENTION_SECONDS,
        "CAMSTREAM_ORPHAN_SWEEP_SECONDS": DEFAULT_ORPHAN_SWEEP_SECONDS,
        "CAMSTREAM_HOUSEKEEPING_INTERVAL_SECONDS": DEFAULT_HOUSEKEEPING_INTERVAL_SECONDS,
        "CAMSTREAM_MIN_FREE_MB": DEFAULT_MIN_FREE_MB,
        "CAMSTREAM_STATUS_REDIS_URL": DEFAULT_STATUS_REDIS_URL,
        "CAMSTREAM_STATUS_PREFIX": DEFAULT_STATUS_PREFIX,
        "CAMSTREAM_STATUS_CHANNEL": DEFAULT_STATUS_CHANNEL,
        "CAMSTREAM_STATUS_TTL_SECONDS": DEFAULT_STATUS_TTL_SECONDS,
        "CAMSTREAM_START_HOUSEKEEPING": True,
        "CAMSTREAM_CONFIGURE_LOGGING": True,
    }
    return cfg


__all__ = ["build_default_config"]
