"""Typed engine settings derived from the application configuration mapping."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from ..utils.coerce import coerce_float, coerce_int, to_bool, to_optional_str

MEGABYTE = 1024 * 1024


@dataclass(frozen=True)
class EngineSettings:
    """Timeouts, paths and policies used by :class:`StreamCoordinator`."""

    output_dir: Path
    ffmpeg_path: str = "ffmpeg"
    start_timeout: float = 15.0
    readiness_interval: float = 0.5
    process_start_grace: float = 10.0
    stop_grace: float = 5.0
    kill_grace: float = 2.0
    assume_started_on_timeout: bool = True
    cleanup_delay: float = 30.0
    cleanup_retry_delay: float = 5.0
    cleanup_max_attempts: int = 3
    session_retention: float = 3600.0
    orphan_sweep_interval: float = 300.0
    housekeeping_interval: float = 1.0
    min_free_bytes: int = 500 * MEGABYTE
    hls_url_prefix: str = "/hls"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "EngineSettings":
        defaults = cls(output_dir=Path("hls"))
        output_dir = to_optional_str(config.get("CAMSTREAM_OUTPUT_DIR"))
        min_free_mb = coerce_int(config.get("CAMSTREAM_MIN_FREE_MB"), defaults.min_free_bytes // MEGABYTE)
        return cls(
            output_dir=Path(output_dir).expanduser() if output_dir else defaults.output_dir,
            ffmpeg_path=to_optional_str(config.get("CAMSTREAM_FFMPEG_PATH")) or defaults.ffmpeg_path,
            start_timeout=_seconds(config, "CAMSTREAM_START_TIMEOUT_SECONDS", defaults.start_timeout),
            readiness_interval=_seconds(
                config, "CAMSTREAM_READINESS_INTERVAL_SECONDS", defaults.readiness_interval
            ),
            process_start_grace=_seconds(
                config, "CAMSTREAM_PROCESS_START_GRACE_SECONDS", defaults.process_start_grace
            ),
            stop_grace=_seconds(config, "CAMSTREAM_STOP_GRACE_SECONDS", defaults.stop_grace),
            kill_grace=_seconds(config, "CAMSTREAM_KILL_GRACE_SECONDS", defaults.kill_grace),
            assume_started_on_timeout=to_bool(
                config.get("CAMSTREAM_ASSUME_STARTED_ON_TIMEOUT"),
                default=defaults.assume_started_on_timeout,
            ),
            cleanup_delay=_seconds(config, "CAMSTREAM_CLEANUP_DELAY_SECONDS", defaults.cleanup_delay),
            session_retention=_seconds(
                config, "CAMSTREAM_SESSION_RETENTION_SECONDS", defaults.session_retention
            ),
            orphan_sweep_interval=_seconds(
                config, "CAMSTREAM_ORPHAN_SWEEP_SECONDS", defaults.orphan_sweep_interval
            ),
            housekeeping_interval=_seconds(
                config, "CAMSTREAM_HOUSEKEEPING_INTERVAL_SECONDS", defaults.housekeeping_interval
            ),
            min_free_bytes=max(0, min_free_mb) * MEGABYTE,
        )


def _seconds(config: Mapping[str, Any], key: str, fallback: float) -> float:
    value = coerce_float(config.get(key), fallback)
    if value < 0:
        return fallback
    return value


__all__ = ["EngineSettings", "MEGABYTE"]
