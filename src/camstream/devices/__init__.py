"""Capture device discovery and reservation."""
from __future__ import annotations

from .enumeration import FFmpegDeviceEnumerator, current_platform, device_input, input_format
from .models import Device, DeviceCapabilities, DeviceCategory, DeviceStatus
from .registry import DeviceEnumerator, DeviceRegistry

__all__ = [
    "Device",
    "DeviceCapabilities",
    "DeviceCategory",
    "DeviceEnumerator",
    "DeviceRegistry",
    "DeviceStatus",
    "FFmpegDeviceEnumerator",
    "current_platform",
    "device_input",
    "input_format",
]
