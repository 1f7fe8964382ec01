"""On-disk layout of per-session HLS output directories."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from ..utils.disk import DiskSpace, check_disk_space

LOGGER = logging.getLogger(__name__)

PLAYLIST_NAME = "stream.m3u8"


class OutputLayout:
    """Map session ids to directories under one output base."""

    def __init__(
        self,
        base_dir: Path,
        *,
        playlist_name: str = PLAYLIST_NAME,
        url_prefix: str = "/hls",
    ) -> None:
        self._base_dir = Path(base_dir)
        self._playlist_name = playlist_name
        self._url_prefix = "/" + url_prefix.strip("/")

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def playlist_name(self) -> str:
        return self._playlist_name

    def stream_dir(self, session_id: str) -> Path:
        return self._base_dir / session_id

    def playlist_path(self, session_id: str) -> Path:
        return self.stream_dir(session_id) / self._playlist_name

    def hls_url(self, session_id: str) -> str:
        return f"{self._url_prefix}/{session_id}/{self._playlist_name}"

    def ensure_base(self) -> Path:
        self._base_dir.mkdir(parents=True, exist_ok=True)
        return self._base_dir

    def ensure_stream_dir(self, session_id: str) -> Path:
        path = self.stream_dir(session_id)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def playlist_exists(self, session_id: str) -> bool:
        return self.playlist_path(session_id).is_file()

    def remove_stream_dir(self, session_id: str) -> bool:
        """Delete the session directory; ``False`` when it did not exist.

        ``OSError`` propagates so callers can retry.
        """

        path = self.stream_dir(session_id)
        if not path.exists():
            return False
        shutil.rmtree(path)
        LOGGER.info("Removed HLS output for %s", session_id)
        return True

    def session_dirs(self) -> list[str]:
        if not self._base_dir.is_dir():
            return []
        return sorted(entry.name for entry in self._base_dir.iterdir() if entry.is_dir())

    def stream_size(self, session_id: str) -> int:
        path = self.stream_dir(session_id)
        if not path.is_dir():
            return 0
        total = 0
        for entry in path.rglob("*"):
            try:
                if entry.is_file():
                    total += entry.stat().st_size
            except OSError:
                LOGGER.debug("Could not stat %s", entry, exc_info=True)
        return total

    def disk_usage(self, required: int = 0) -> DiskSpace:
        """Free space on the filesystem holding the base directory.

        Measures the nearest existing ancestor when the base does not exist yet.
        """

        target: Optional[Path] = self._base_dir
        while target is not None and not target.exists():
            parent = target.parent
            target = parent if parent != target else None
        return check_disk_space(target or Path.cwd(), required)


__all__ = ["OutputLayout", "PLAYLIST_NAME"]
