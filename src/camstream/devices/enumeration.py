"""Platform-specific camera discovery through FFmpeg."""
from __future__ import annotations

import logging
import re
import subprocess
import sys
from pathlib import Path
from typing import Callable, List, Optional

from ..exceptions import DeviceEnumerationError
from .models import Device, DeviceCategory, DeviceStatus, infer_category

LOGGER = logging.getLogger(__name__)

PLATFORM_WINDOWS = "win32"
PLATFORM_MACOS = "darwin"
PLATFORM_LINUX = "linux"

_DSHOW_VIDEO = re.compile(r'\[dshow[^\]]*\]\s*"([^"]+)"\s*\(video\)')
_DSHOW_NONE = re.compile(r'\[dshow[^\]]*\]\s*"([^"]+)"\s*\(none\)')
_QUOTED = re.compile(r'"([^"]+)"')
_AVFOUNDATION_ENTRY = re.compile(r"\[(\d+)\]\s+(.+)")


def current_platform() -> str:
    """Return ``win32``, ``darwin`` or ``linux`` (the fallback for anything else)."""

    if sys.platform.startswith("win"):
        return PLATFORM_WINDOWS
    if sys.platform == PLATFORM_MACOS:
        return PLATFORM_MACOS
    return PLATFORM_LINUX


def input_format(platform: str) -> str:
    if platform == PLATFORM_WINDOWS:
        return "dshow"
    if platform == PLATFORM_MACOS:
        return "avfoundation"
    return "v4l2"


def list_devices_args(platform: str) -> List[str]:
    if platform == PLATFORM_WINDOWS:
        return ["-hide_banner", "-f", "dshow", "-list_devices", "true", "-i", "dummy"]
    if platform == PLATFORM_MACOS:
        return ["-hide_banner", "-f", "avfoundation", "-list_devices", "true", "-i", ""]
    return ["-hide_banner", "-f", "v4l2", "-list_formats", "all", "-i", "/dev/video0"]


def device_input(platform: str, device_id: str) -> str:
    """Render the ``-i`` argument that opens ``device_id`` on ``platform``."""

    if platform == PLATFORM_WINDOWS:
        return f"video={device_id}"
    if platform == PLATFORM_MACOS:
        return device_id
    return device_id if device_id.startswith("/dev/") else f"/dev/{device_id}"


def parse_directshow_listing(output: str) -> list[Device]:
    """Parse ``-list_devices`` output from DirectShow.

    Newer FFmpeg builds tag each line with ``(video)``; older ones print a
    ``DirectShow video devices`` section header instead.
    """

    devices: list[Device] = []
    lines = output.splitlines()
    for line in lines:
        match = _DSHOW_VIDEO.search(line)
        if match:
            name = match.group(1)
            devices.append(Device(id=name, name=name, category=infer_category(name)))
            continue
        match = _DSHOW_NONE.search(line)
        if match:
            name = match.group(1)
            devices.append(Device(id=name, name=name, category=DeviceCategory.VIRTUAL))
    if devices:
        return devices

    in_video = False
    for line in lines:
        if "DirectShow video devices" in line:
            in_video = True
            continue
        if "DirectShow audio devices" in line:
            in_video = False
            continue
        if not in_video:
            continue
        match = _QUOTED.search(line)
        if match and not match.group(1).startswith("@device"):
            name = match.group(1)
            devices.append(Device(id=name, name=name, category=infer_category(name)))
    return devices


def parse_avfoundation_listing(output: str) -> list[Device]:
    devices: list[Device] = []
    in_video = False
    for line in output.splitlines():
        if "AVFoundation video devices:" in line:
            in_video = True
            continue
        if "AVFoundation audio devices:" in line:
            in_video = False
            continue
        if not in_video:
            continue
        match = _AVFOUNDATION_ENTRY.search(line)
        if match:
            index, name = match.group(1), match.group(2).strip()
            devices.append(Device(id=index, name=name, category=infer_category(name)))
    return devices


def scan_video_nodes(dev_root: Path = Path("/dev"), limit: int = 10) -> list[Device]:
    """Probe ``/dev/video0`` .. ``/dev/video{limit-1}`` for V4L2 nodes."""

    devices: list[Device] = []
    for index in range(limit):
        node = dev_root / f"video{index}"
        if node.exists():
            devices.append(
                Device(
                    id=str(node),
                    name=f"Video Device {index}",
                    category=DeviceCategory.UNKNOWN,
                    status=DeviceStatus.AVAILABLE,
                )
            )
    return devices


class FFmpegDeviceEnumerator:
    """Enumerate cameras using the FFmpeg device listing for the host platform."""

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        *,
        platform: Optional[str] = None,
        timeout: float = 5.0,
        linux_scanner: Callable[[], list[Device]] = scan_video_nodes,
    ) -> None:
        self._ffmpeg_binary = ffmpeg_binary
        self._platform = platform or current_platform()
        self._timeout = timeout
        self._linux_scanner = linux_scanner

    @property
    def platform(self) -> str:
        return self._platform

    def enumerate(self) -> list[Device]:
        if self._platform == PLATFORM_LINUX:
            return self._linux_scanner()

        output = self._run_listing()
        if self._platform == PLATFORM_WINDOWS:
            devices = parse_directshow_listing(output)
        else:
            devices = parse_avfoundation_listing(output)
        LOGGER.debug("Enumerated %d camera(s) on %s", len(devices), self._platform)
        return devices

    def _run_listing(self) -> str:
        command = [self._ffmpeg_binary, *list_devices_args(self._platform)]
        try:
            result = subprocess.run(
                command,
                text=True,
                capture_output=True,
                check=False,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise DeviceEnumerationError(
                f"FFmpeg binary '{self._ffmpeg_binary}' not found"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            # The listing is printed before FFmpeg gives up on the dummy input,
            # so whatever was captured is still usable.
            LOGGER.warning("Device listing timed out after %.1fs", self._timeout)
            partial = exc.stderr or ""
            return partial.decode("utf-8", "replace") if isinstance(partial, bytes) else partial
        except OSError as exc:
            raise DeviceEnumerationError(f"Failed to run device listing: {exc}") from exc
        # FFmpeg exits non-zero after listing devices; stderr carries the listing.
        return f"{result.stderr}\n{result.stdout}"


__all__ = [
    "FFmpegDeviceEnumerator",
    "PLATFORM_LINUX",
    "PLATFORM_MACOS",
    "PLATFORM_WINDOWS",
    "current_platform",
    "device_input",
    "input_format",
    "list_devices_args",
    "parse_avfoundation_listing",
    "parse_directshow_listing",
    "scan_video_nodes",
]
