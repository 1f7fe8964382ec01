"""Deferred deletion of session output directories."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .output import OutputLayout

LOGGER = logging.getLogger(__name__)


@dataclass
class _CleanupTask:
    session_id: str
    due: float
    attempts: int = 0


class CleanupScheduler:
    """Queue output removals to run after a grace delay.

    Nothing runs on its own: :meth:`run_due` executes whatever has come due
    and is driven by the housekeeping loop (or directly in tests with a fake
    ``clock``). Failed removals are retried after ``retry_delay`` up to
    ``max_attempts`` times and then dropped with an error log.
    """

    def __init__(
        self,
        layout: OutputLayout,
        *,
        delay: float = 30.0,
        retry_delay: float = 5.0,
        max_attempts: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._layout = layout
        self._delay = max(0.0, delay)
        self._retry_delay = max(0.0, retry_delay)
        self._max_attempts = max(1, int(max_attempts))
        self._clock = clock
        self._lock = threading.Lock()
        self._tasks: dict[str, _CleanupTask] = {}

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def schedule(self, session_id: str, delay: Optional[float] = None) -> float:
        """Queue removal of ``session_id``'s output, replacing any pending task."""

        wait = self._delay if delay is None else max(0.0, delay)
        due = self._clock() + wait
        with self._lock:
            self._tasks[session_id] = _CleanupTask(session_id=session_id, due=due)
        LOGGER.debug("Scheduled cleanup of %s in %.1fs", session_id, wait)
        return due

    def cancel(self, session_id: str) -> bool:
        with self._lock:
            return self._tasks.pop(session_id, None) is not None

    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._tasks)

    def is_pending(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._tasks

    def clear(self) -> None:
        with self._lock:
            self._tasks.clear()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def run_due(self, now: Optional[float] = None) -> list[str]:
        """Run every task whose due time has passed; returns the cleaned ids."""

        current = self._clock() if now is None else now
        with self._lock:
            due = [task for task in self._tasks.values() if task.due <= current]
            for task in due:
                del self._tasks[task.session_id]

        cleaned: list[str] = []
        for task in due:
            try:
                self._layout.remove_stream_dir(task.session_id)
            except OSError as exc:
                self._retry(task, current, exc)
                continue
            cleaned.append(task.session_id)
        return cleaned

    def sweep_orphans(self, known_ids: Iterable[str]) -> list[str]:
        """Remove output directories that belong to no known or pending session."""

        keep = set(known_ids)
        with self._lock:
            keep.update(self._tasks)
        removed: list[str] = []
        for name in self._layout.session_dirs():
            if name in keep:
                continue
            try:
                self._layout.remove_stream_dir(name)
            except OSError as exc:
                LOGGER.warning("Failed to remove orphaned output %s: %s", name, exc)
                continue
            removed.append(name)
        if removed:
            LOGGER.info("Removed %d orphaned output director%s", len(removed), "y" if len(removed) == 1 else "ies")
        return removed

    def _retry(self, task: _CleanupTask, now: float, exc: OSError) -> None:
        attempts = task.attempts + 1
        if attempts >= self._max_attempts:
            LOGGER.error(
                "Giving up on cleanup of %s after %d attempt(s): %s",
                task.session_id,
                attempts,
                exc,
            )
            return
        LOGGER.warning(
            "Cleanup of %s failed (attempt %d/%d): %s",
            task.session_id,
            attempts,
            self._max_attempts,
            exc,
        )
        with self._lock:
            # A fresh schedule() wins over the retry.
            self._tasks.setdefault(
                task.session_id,
                _CleanupTask(session_id=task.session_id, due=now + self._retry_delay, attempts=attempts),
            )


__all__ = ["CleanupScheduler"]
