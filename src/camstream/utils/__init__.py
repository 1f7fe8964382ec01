"""Utility helpers shared across the camstream service."""
from __future__ import annotations

from .coerce import (
    coerce_float,
    coerce_int,
    to_bool,
    to_optional_float,
    to_optional_int,
    to_optional_str,
)
from .concurrency import wait_for
from .disk import DiskSpace, check_disk_space
from .formatting import (
    format_bytes,
    is_valid_bitrate,
    is_valid_framerate,
    is_valid_resolution,
    parse_resolution,
)

__all__ = [
    "DiskSpace",
    "check_disk_space",
    "coerce_float",
    "coerce_int",
    "format_bytes",
    "is_valid_bitrate",
    "is_valid_framerate",
    "is_valid_resolution",
    "parse_resolution",
    "to_bool",
    "to_optional_float",
    "to_optional_int",
    "to_optional_str",
    "wait_for",
]
