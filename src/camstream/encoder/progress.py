"""Parse the periodic ``key=value`` progress lines FFmpeg writes to stderr."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

_FRAME = re.compile(r"frame=\s*(\d+)")
_FPS = re.compile(r"fps=\s*([\d.]+)")
_TIME = re.compile(r"time=\s*([\d:.]+)")
_BITRATE = re.compile(r"bitrate=\s*(\S+)")
_SPEED = re.compile(r"speed=\s*(\S+)")


@dataclass(frozen=True)
class EncoderProgress:
    frame: int
    fps: float
    time: str
    bitrate: str = "N/A"
    speed: str = "N/A"

    def to_dict(self) -> dict[str, Any]:
        return {
            "frame": self.frame,
            "fps": self.fps,
            "time": self.time,
            "bitrate": self.bitrate,
            "speed": self.speed,
        }


def parse_progress(line: str) -> Optional[EncoderProgress]:
    """Return the progress sample in ``line`` or ``None``.

    ``frame``, ``fps`` and ``time`` are required; ``bitrate`` and ``speed``
    default to ``"N/A"``.
    """

    if not line:
        return None
    frame = _FRAME.search(line)
    fps = _FPS.search(line)
    time_match = _TIME.search(line)
    if not (frame and fps and time_match):
        return None
    try:
        frame_value = int(frame.group(1))
        fps_value = float(fps.group(1))
    except ValueError:
        return None
    bitrate = _BITRATE.search(line)
    speed = _SPEED.search(line)
    return EncoderProgress(
        frame=frame_value,
        fps=fps_value,
        time=time_match.group(1),
        bitrate=bitrate.group(1) if bitrate else "N/A",
        speed=speed.group(1) if speed else "N/A",
    )


__all__ = ["EncoderProgress", "parse_progress"]
