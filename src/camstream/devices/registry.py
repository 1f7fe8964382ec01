"""Device table and exclusive per-device reservations."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Optional, Protocol

from .models import Device, DeviceStatus

LOGGER = logging.getLogger(__name__)

_UNRESERVABLE = (DeviceStatus.DISCONNECTED, DeviceStatus.ERROR)


class DeviceEnumerator(Protocol):
    """Platform collaborator returning the devices currently attached."""

    def enumerate(self) -> list[Device]:
        ...


@dataclass
class _DeviceEntry:
    device: Device
    holder: Optional[str]
    last_seen: datetime


class DeviceRegistry:
    """Track known capture devices and the session holding each of them.

    Every mutation happens under a single lock so a reservation is decided in
    one step; two sessions can never both believe they own a device.
    """

    def __init__(self, enumerator: Optional[DeviceEnumerator] = None) -> None:
        self._enumerator = enumerator
        self._lock = Lock()
        self._entries: dict[str, _DeviceEntry] = {}

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------
    def refresh(self) -> list[Device]:
        """Re-enumerate devices and merge them into the table.

        Devices missing from the listing are marked disconnected but kept,
        along with any holder, so a reservation survives a transient loss.
        """

        if self._enumerator is None:
            LOGGER.debug("No device enumerator configured; refresh skipped")
            return self.list_devices()

        discovered = self._enumerator.enumerate()
        now = datetime.now(timezone.utc)
        seen: set[str] = set()
        with self._lock:
            for device in discovered:
                seen.add(device.id)
                existing = self._entries.get(device.id)
                if existing is None:
                    self._entries[device.id] = _DeviceEntry(device=device, holder=None, last_seen=now)
                    LOGGER.info("Discovered camera %s (%s)", device.id, device.name)
                    continue
                status = DeviceStatus.IN_USE if existing.holder else device.status
                existing.device = replace(device, status=status)
                existing.last_seen = now
            for device_id, entry in self._entries.items():
                if device_id in seen or entry.device.status is DeviceStatus.DISCONNECTED:
                    continue
                entry.device = replace(entry.device, status=DeviceStatus.DISCONNECTED)
                LOGGER.warning(
                    "Camera %s no longer listed; marked disconnected (holder=%s)",
                    device_id,
                    entry.holder or "none",
                )
            return [entry.device for entry in self._entries.values()]

    def register(self, device: Device) -> None:
        """Add or replace a device entry without enumerating."""

        with self._lock:
            existing = self._entries.get(device.id)
            holder = existing.holder if existing else None
            status = DeviceStatus.IN_USE if holder else device.status
            self._entries[device.id] = _DeviceEntry(
                device=replace(device, status=status),
                holder=holder,
                last_seen=datetime.now(timezone.utc),
            )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------
    def reserve(self, device_id: str, session_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(device_id)
            if entry is None:
                return False
            if entry.holder is not None:
                LOGGER.debug("Camera %s already reserved by %s", device_id, entry.holder)
                return False
            if entry.device.status in _UNRESERVABLE:
                return False
            entry.holder = session_id
            entry.device = replace(entry.device, status=DeviceStatus.IN_USE)
        LOGGER.info("Camera %s reserved by session %s", device_id, session_id)
        return True

    def release(self, device_id: str, session_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(device_id)
            if entry is None or entry.holder != session_id:
                return False
            entry.holder = None
            entry.device = replace(entry.device, status=DeviceStatus.AVAILABLE)
        LOGGER.info("Camera %s released by session %s", device_id, session_id)
        return True

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    def get(self, device_id: str) -> Optional[Device]:
        with self._lock:
            entry = self._entries.get(device_id)
            return entry.device if entry else None

    def holder(self, device_id: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(device_id)
            return entry.holder if entry else None

    def is_available(self, device_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(device_id)
            return (
                entry is not None
                and entry.holder is None
                and entry.device.status is DeviceStatus.AVAILABLE
            )

    def list_devices(self) -> list[Device]:
        with self._lock:
            return [entry.device for entry in self._entries.values()]


__all__ = ["DeviceEnumerator", "DeviceRegistry"]
