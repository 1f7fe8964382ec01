"""Root logger setup for the camstream service."""
from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Players poll playlists and segments every few seconds.
NOISY_LOGGERS = ("werkzeug",)

_LOG_FILE: Optional[Path] = None


def resolve_level(level: Union[int, str, None], default: int = logging.INFO) -> int:
    if isinstance(level, int):
        return level
    if level:
        resolved = logging.getLevelName(str(level).strip().upper())
        if isinstance(resolved, int):
            return resolved
    return default


def configure_logging(
    prefix: str,
    log_dir: Path,
    *,
    level: Union[int, str, None] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> Path:
    """Log to stdout and a timestamped file under ``log_dir``.

    Only the first call installs handlers; later calls return the same file.
    """

    global _LOG_FILE

    if _LOG_FILE is not None:
        return _LOG_FILE

    log_directory = Path(log_dir).expanduser()
    log_directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_file = log_directory / f"{prefix}-{stamp}.log"

    root = logging.getLogger()
    root.setLevel(resolve_level(level))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in (logging.FileHandler(log_file, encoding="utf-8"), logging.StreamHandler(sys.stdout)):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    _LOG_FILE = log_file
    root.info("Logging to %s", log_file)
    return log_file


__all__ = ["LOG_FORMAT", "NOISY_LOGGERS", "configure_logging", "resolve_level"]
