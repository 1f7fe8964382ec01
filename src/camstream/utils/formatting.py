"""Formatting and validation helpers for stream parameters."""
from __future__ import annotations

import re
from typing import Optional, Tuple

_RESOLUTION_PATTERN = re.compile(r"^(\d+)x(\d+)$")
_BITRATE_PATTERN = re.compile(r"^\d+[kKmM]?$")
_BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def format_bytes(value: int, decimals: int = 2) -> str:
    """Render a byte count using binary units (``"100 MB"``)."""

    if value <= 0:
        return "0 Bytes"
    index = 0
    scaled = float(value)
    while scaled >= 1024 and index < len(_BYTE_UNITS) - 1:
        scaled /= 1024
        index += 1
    return f"{round(scaled, decimals):g} {_BYTE_UNITS[index]}"


def parse_resolution(resolution: str) -> Optional[Tuple[int, int]]:
    match = _RESOLUTION_PATTERN.match(resolution or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def is_valid_resolution(resolution: str) -> bool:
    parsed = parse_resolution(resolution)
    if parsed is None:
        return False
    width, height = parsed
    return 320 <= width <= 4096 and 240 <= height <= 2160


def is_valid_framerate(framerate: float) -> bool:
    return 1 <= framerate <= 120


def is_valid_bitrate(bitrate: str) -> bool:
    return bool(_BITRATE_PATTERN.match(bitrate or ""))


__all__ = [
    "format_bytes",
    "is_valid_bitrate",
    "is_valid_framerate",
    "is_valid_resolution",
    "parse_resolution",
]
