"""Periodic background loop driving cleanup and retention sweeps."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


LOGGER = logging.getLogger(__name__)


@dataclass
class _PeriodicTask:
    name: str
    callback: Callable[[], object]
    every: Optional[float]
    next_run: float = 0.0


class HousekeepingLoop:
    """Tick on a daemon thread and run each registered task when it is due.

    Tasks registered without ``every`` run on every tick. A failing task is
    logged and does not affect the others.
    """

    def __init__(self, tick_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._tick = max(0.05, float(tick_seconds))
        self._clock = clock
        self._tasks: list[_PeriodicTask] = []
        self._tasks_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def tick(self) -> float:
        return self._tick

    def add_task(self, name: str, callback: Callable[[], object], *, every: Optional[float] = None) -> None:
        interval = None if every is None else max(self._tick, float(every))
        with self._tasks_lock:
            self._tasks.append(
                _PeriodicTask(name=name, callback=callback, every=interval, next_run=self._clock())
            )

    def task_names(self) -> list[str]:
        with self._tasks_lock:
            return [task.name for task in self._tasks]

    def run_once(self, *, force: bool = False) -> list[str]:
        """Run due tasks (all of them with ``force``); returns the names that ran."""

        now = self._clock()
        with self._tasks_lock:
            due = [task for task in self._tasks if force or task.next_run <= now]
            for task in due:
                if task.every is not None:
                    task.next_run = now + task.every

        ran: list[str] = []
        for task in due:
            try:
                task.callback()
            except Exception:
                LOGGER.warning("Housekeeping task %s failed", task.name, exc_info=True)
                continue
            ran.append(task.name)
        return ran

    # ------------------------------------------------------------------
    # Background thread
    # ------------------------------------------------------------------
    def start(self) -> None:
        thread = self._thread
        if thread and thread.is_alive():
            return

        def _worker() -> None:
            while not self._stop_event.wait(self._tick):
                self.run_once()

        self._stop_event.clear()
        thread = threading.Thread(target=_worker, name="camstream-housekeeping", daemon=True)
        self._thread = thread
        thread.start()
        LOGGER.debug("Housekeeping loop started (tick=%.2fs)", self._tick)

    def stop(self) -> None:
        thread = self._thread
        if thread is None:
            return
        if thread.is_alive():
            self._stop_event.set()
            thread.join(timeout=2.0)
        self._stop_event.clear()
        self._thread = None

    def running(self) -> bool:
        thread = self._thread
        return bool(thread and thread.is_alive())


__all__ = ["HousekeepingLoop"]
