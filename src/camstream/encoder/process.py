"""Supervised FFmpeg process producing HLS output for one session."""
from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import IO, Any, Callable, Iterable, Optional

from ..exceptions import (
    InvalidStateError,
    ProcessCrashError,
    ProcessSpawnError,
    StartCancelledError,
    StartTimeoutError,
)
from .events import EventChannel, EventKind, ProcessEvent, Subscription
from .options import EncoderProcessOptions, Invocation
from .progress import EncoderProgress, parse_progress
from .stop_strategy import StopStrategy

LOGGER = logging.getLogger(__name__)

PopenFactory = Callable[..., subprocess.Popen]


class ProcessState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


_STARTABLE = (ProcessState.IDLE, ProcessState.STOPPED, ProcessState.ERROR)


class EncoderProcess:
    """Own one encoder subprocess and drive its lifecycle state machine.

    ``idle -> starting -> running -> stopping -> stopped``; an unexpected
    exit or a spawn failure lands in ``error``. Reader threads watch the
    encoder's output for the start marker and progress lines, and a waiter
    thread reaps the process and classifies the exit. Each run publishes
    exactly one terminal event on :attr:`events`.
    """

    def __init__(
        self,
        session_id: str,
        options: EncoderProcessOptions,
        invocation: Invocation,
        *,
        stop_strategy: Optional[StopStrategy] = None,
        popen_factory: PopenFactory = subprocess.Popen,
    ) -> None:
        self._session_id = session_id
        self._options = options
        self._invocation = invocation
        self._stop_strategy = stop_strategy or StopStrategy(
            graceful_timeout=options.stop_grace,
            kill_timeout=options.kill_grace,
        )
        self._popen_factory = popen_factory

        self._lock = threading.RLock()
        self._state = ProcessState.IDLE
        self._process: Optional[subprocess.Popen] = None
        self._readers: list[threading.Thread] = []
        self._waiter: Optional[threading.Thread] = None
        self._started = threading.Event()
        self._exited = threading.Event()
        self._events = EventChannel(session_id)
        self._output: deque[str] = deque(maxlen=max(1, options.diagnostic_lines))
        self._progress: Optional[EncoderProgress] = None
        self._started_at: Optional[datetime] = None
        self._started_monotonic: Optional[float] = None
        self._returncode: Optional[int] = None
        self._error: Optional[str] = None
        self._stop_requested = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Spawn the encoder and block until it is running.

        Raises :class:`ProcessSpawnError` when the executable cannot be
        launched, :class:`ProcessCrashError` when it exits before printing a
        start marker, :class:`StartCancelledError` when :meth:`stop` wins the
        race and :class:`StartTimeoutError` when the start grace elapses with
        ``assume_started_on_timeout`` switched off.
        """

        with self._lock:
            if self._state not in _STARTABLE:
                raise InvalidStateError(
                    f"Encoder for session {self._session_id} cannot start from state {self._state.value}"
                )
            self._reset_run()
            self._state = ProcessState.STARTING
            command = self._invocation.command
            LOGGER.info("Launching encoder for %s: %s", self._session_id, self._invocation.display())
            try:
                process = self._popen_factory(
                    command,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    bufsize=1,
                )
            except (OSError, ValueError) as exc:
                message = f"Failed to launch encoder '{self._invocation.executable}': {exc}"
                self._state = ProcessState.ERROR
                self._error = message
                self._started.set()
                self._exited.set()
                self._events.publish(ProcessEvent(EventKind.ERROR, self._session_id, message=message))
                LOGGER.error("%s", message)
                raise ProcessSpawnError(message) from exc
            self._process = process
            self._readers = [
                self._spawn_thread(self._read_stream, "stdout", process.stdout),
                self._spawn_thread(self._read_stream, "stderr", process.stderr),
            ]
            self._waiter = self._spawn_thread(self._wait_for_exit, "waiter", process)

        LOGGER.debug("Encoder for %s spawned (pid=%s)", self._session_id, process.pid)
        marker_seen = self._started.wait(self._options.start_grace)

        with self._lock:
            state = self._state
            if state is ProcessState.RUNNING:
                return
            if state is ProcessState.STOPPING or (
                state is ProcessState.STOPPED and self._stop_requested
            ):
                raise StartCancelledError(self._session_id)
            if self._exited.is_set():
                returncode = self._returncode
                message = (
                    f"Encoder exited with code {returncode} before starting: {self._last_line()}"
                )
                raise ProcessCrashError(message, returncode=returncode)
            if not marker_seen and self._options.assume_started_on_timeout:
                LOGGER.warning(
                    "No start marker from encoder %s within %.1fs; assuming it is running",
                    self._session_id,
                    self._options.start_grace,
                )
                self._mark_running()
                return

        LOGGER.error(
            "Encoder %s did not report a start within %.1fs", self._session_id, self._options.start_grace
        )
        self.stop()
        raise StartTimeoutError(self._session_id, self._options.start_grace)

    def stop(self) -> None:
        """Ask the encoder to quit and wait for it, escalating to SIGKILL.

        A no-op when the process never started or has already exited. The
        handle is always ``stopped`` afterwards.
        """

        with self._lock:
            process = self._process
            if self._state in (ProcessState.IDLE, ProcessState.STOPPED) or process is None:
                return
            if self._exited.is_set():
                return
            if self._state is ProcessState.STOPPING:
                already_stopping = True
            else:
                already_stopping = False
                self._state = ProcessState.STOPPING
                self._stop_requested = True

        if already_stopping:
            self._exited.wait(self._options.stop_grace + self._options.kill_grace)
        else:
            LOGGER.info("Stopping encoder for %s (pid=%s)", self._session_id, process.pid)
            result = self._stop_strategy.shutdown(process, self._exited)
            if result.forced:
                LOGGER.warning("Encoder for %s required SIGKILL", self._session_id)
        self._force_stopped()

    def kill(self) -> None:
        """SIGKILL the encoder without a quit request; the handle is ``stopped`` on return.

        Waits up to ``kill_grace`` for the process to be reaped.
        """

        with self._lock:
            process = self._process
            self._stop_requested = True
            killed = process is not None and not self._exited.is_set()
            if killed:
                self._state = ProcessState.STOPPING
                LOGGER.warning("Killing encoder for %s (pid=%s)", self._session_id, process.pid)
                self._stop_strategy.kill(process)
        if killed and not self._exited.wait(self._options.kill_grace):
            LOGGER.error("Encoder for %s still running after SIGKILL", self._session_id)
        self._force_stopped()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the process has been reaped."""

        return self._exited.wait(timeout)

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> ProcessState:
        with self._lock:
            return self._state

    @property
    def invocation(self) -> Invocation:
        return self._invocation

    @property
    def options(self) -> EncoderProcessOptions:
        return self._options

    @property
    def pid(self) -> Optional[int]:
        process = self._process
        return process.pid if process else None

    @property
    def returncode(self) -> Optional[int]:
        with self._lock:
            return self._returncode

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error

    @property
    def progress(self) -> Optional[EncoderProgress]:
        with self._lock:
            return self._progress

    @property
    def started_at(self) -> Optional[datetime]:
        with self._lock:
            return self._started_at

    @property
    def exited(self) -> bool:
        return self._exited.is_set()

    @property
    def is_running(self) -> bool:
        return self.state is ProcessState.RUNNING

    @property
    def events(self) -> EventChannel:
        return self._events

    def subscribe(self, kinds: Optional[Iterable[EventKind]] = None) -> Subscription:
        return self._events.subscribe(kinds)

    def uptime(self) -> float:
        with self._lock:
            if self._started_monotonic is None or self._state is not ProcessState.RUNNING:
                return 0.0
            return max(0.0, time.monotonic() - self._started_monotonic)

    def recent_output(self, limit: Optional[int] = None) -> list[str]:
        with self._lock:
            lines = list(self._output)
        if limit is not None:
            return lines[-limit:] if limit > 0 else []
        return lines

    def to_dict(self) -> dict[str, Any]:
        progress = self.progress
        return {
            "session_id": self._session_id,
            "state": self.state.value,
            "pid": self.pid,
            "returncode": self.returncode,
            "uptime": self.uptime(),
            "error": self.error,
            "progress": progress.to_dict() if progress else None,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _reset_run(self) -> None:
        self._started = threading.Event()
        self._exited = threading.Event()
        self._events = EventChannel(self._session_id)
        self._output.clear()
        self._progress = None
        self._started_at = None
        self._started_monotonic = None
        self._returncode = None
        self._error = None
        self._stop_requested = False

    def _spawn_thread(self, target: Callable[..., None], role: str, *args: Any) -> threading.Thread:
        thread = threading.Thread(
            target=target,
            args=args,
            name=f"encoder-{role}-{self._session_id[:8]}",
            daemon=True,
        )
        thread.start()
        return thread

    def _read_stream(self, stream: Optional[IO[str]]) -> None:
        if stream is None:
            return
        try:
            for raw in stream:
                line = raw.strip()
                if line:
                    self._handle_line(line)
        except (ValueError, OSError) as exc:
            LOGGER.debug("Encoder output stream for %s closed: %s", self._session_id, exc)

    def _handle_line(self, line: str) -> None:
        progress = parse_progress(line)
        with self._lock:
            self._output.append(line)
            if progress is not None:
                self._progress = progress
            starting = self._state is ProcessState.STARTING
            if starting and any(marker in line for marker in self._options.start_markers):
                self._mark_running()
        if progress is not None:
            self._events.publish(ProcessEvent(EventKind.PROGRESS, self._session_id, progress=progress))
        else:
            LOGGER.debug("[encoder %s] %s", self._session_id[:8], line)

    def _mark_running(self) -> None:
        self._state = ProcessState.RUNNING
        self._started_at = datetime.now(timezone.utc)
        self._started_monotonic = time.monotonic()
        self._started.set()
        LOGGER.info("Encoder for %s is running (pid=%s)", self._session_id, self.pid)
        self._events.publish(ProcessEvent(EventKind.STARTED, self._session_id))

    def _wait_for_exit(self, process: subprocess.Popen) -> None:
        returncode = process.wait()
        for reader in self._readers:
            reader.join(timeout=1.0)

        with self._lock:
            self._returncode = returncode
            if self._state in (ProcessState.STOPPING, ProcessState.STOPPED) or returncode == 0:
                self._state = ProcessState.STOPPED
                event = ProcessEvent(EventKind.STOPPED, self._session_id, returncode=returncode)
                LOGGER.info("Encoder for %s exited with %s", self._session_id, returncode)
            else:
                message = f"Encoder exited with code {returncode}: {self._last_line()}"
                self._state = ProcessState.ERROR
                self._error = message
                event = ProcessEvent(
                    EventKind.ERROR,
                    self._session_id,
                    returncode=returncode,
                    message=message,
                )
                LOGGER.error("Encoder for %s failed: %s", self._session_id, message)
            self._exited.set()
            self._started.set()
        self._events.publish(event)

    def _force_stopped(self) -> None:
        with self._lock:
            self._state = ProcessState.STOPPED
            returncode = self._returncode
        self._events.publish(ProcessEvent(EventKind.STOPPED, self._session_id, returncode=returncode))

    def _last_line(self) -> str:
        return self._output[-1] if self._output else "no output"


__all__ = ["EncoderProcess", "ProcessState"]
