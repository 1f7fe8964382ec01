"""Wait for an encoder's first playlist to appear on disk."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..utils.concurrency import wait_for
from .output import OutputLayout

LOGGER = logging.getLogger(__name__)


class ReadinessMonitor:
    """Poll a session's playlist path with a bounded, cancellable wait."""

    def __init__(self, layout: OutputLayout, *, interval: float = 0.5) -> None:
        self._layout = layout
        self._interval = max(0.01, float(interval))

    @property
    def interval(self) -> float:
        return self._interval

    def is_ready(self, session_id: str) -> bool:
        return self._layout.playlist_exists(session_id)

    def wait_for_output(
        self,
        session_id: str,
        timeout: float,
        cancel_event: Optional[threading.Event] = None,
        *,
        alive: Optional[Callable[[], bool]] = None,
    ) -> bool:
        """Return ``True`` once the playlist exists.

        ``False`` means the timeout elapsed, ``cancel_event`` was set or
        ``alive`` reported that the producing process is gone.
        """

        def _settled() -> bool:
            return self.is_ready(session_id) or (alive is not None and not alive())

        wait_for(_settled, timeout=timeout, interval=self._interval, stop_event=cancel_event)
        ready = self.is_ready(session_id)
        if ready:
            LOGGER.info("HLS output ready for %s", session_id)
        elif cancel_event is not None and cancel_event.is_set():
            LOGGER.info("Readiness wait for %s cancelled", session_id)
        elif alive is not None and not alive():
            LOGGER.warning("Encoder for %s exited before producing output", session_id)
        else:
            LOGGER.warning("No HLS output for %s within %.1fs", session_id, timeout)
        return ready


__all__ = ["ReadinessMonitor"]
