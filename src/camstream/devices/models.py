"""Data structures that describe capture devices."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class DeviceStatus(str, Enum):
    AVAILABLE = "available"
    IN_USE = "in-use"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class DeviceCategory(str, Enum):
    BUILTIN = "builtin"
    USB = "usb"
    VIRTUAL = "virtual"
    UNKNOWN = "unknown"


_BUILTIN_HINTS = ("facetime", "isight", "integrated")
_USB_HINTS = ("usb", "webcam", "logitech")
_VIRTUAL_HINTS = ("virtual", "obs", "screen")


def infer_category(name: str) -> DeviceCategory:
    """Guess the device category from the name the platform reports."""

    lowered = (name or "").lower()
    if any(hint in lowered for hint in _BUILTIN_HINTS):
        return DeviceCategory.BUILTIN
    if any(hint in lowered for hint in _USB_HINTS):
        return DeviceCategory.USB
    if any(hint in lowered for hint in _VIRTUAL_HINTS):
        return DeviceCategory.VIRTUAL
    return DeviceCategory.UNKNOWN


@dataclass(frozen=True)
class DeviceCapabilities:
    """Optional capability metadata reported for a device."""

    resolutions: Tuple[str, ...] = field(default_factory=tuple)
    frame_rates: Tuple[float, ...] = field(default_factory=tuple)
    auto_focus: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "resolutions": list(self.resolutions),
            "frame_rates": list(self.frame_rates),
            "auto_focus": self.auto_focus,
        }


@dataclass(frozen=True)
class Device:
    """Snapshot of a capture device as last seen by the registry."""

    id: str
    name: str
    category: DeviceCategory = DeviceCategory.UNKNOWN
    status: DeviceStatus = DeviceStatus.AVAILABLE
    capabilities: Optional[DeviceCapabilities] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.category.value,
            "status": self.status.value,
            "capabilities": self.capabilities.to_dict() if self.capabilities else None,
        }


__all__ = [
    "Device",
    "DeviceCapabilities",
    "DeviceCategory",
    "DeviceStatus",
    "infer_category",
]
