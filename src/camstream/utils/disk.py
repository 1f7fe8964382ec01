"""Disk space inspection for the output medium."""
from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class DiskSpace:
    """Result of a free-space check against a required byte count."""

    available: int
    total: int
    required: int

    @property
    def sufficient(self) -> bool:
        return self.available >= self.required


def check_disk_space(path: str | Path, required: int) -> DiskSpace:
    """Measure free space on the filesystem holding ``path``."""

    usage = shutil.disk_usage(Path(path))
    return DiskSpace(available=usage.free, total=usage.total, required=int(required))


__all__ = ["DiskSpace", "check_disk_space"]
