"""Concurrency-related helpers."""
from __future__ import annotations

import time
from threading import Event
from typing import Callable, Optional


def wait_for(
    predicate: Callable[[], bool],
    *,
    timeout: float,
    interval: float,
    stop_event: Optional[Event] = None,
) -> bool:
    """Poll ``predicate`` until it holds, the timeout elapses or ``stop_event`` fires.

    Sleeps on the stop event between checks so a cancellation wakes the caller
    immediately. Returns ``True`` only when the predicate was satisfied.
    """

    stop = stop_event or Event()
    deadline = time.monotonic() + max(0.0, timeout)
    step = max(0.01, interval)
    while True:
        if stop.is_set():
            return False
        if predicate():
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        if stop.wait(min(step, remaining)):
            return False


__all__ = ["wait_for"]
