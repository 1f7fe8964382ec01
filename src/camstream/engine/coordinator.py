"""Session coordinator that ties devices, encoders and output together."""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional

from ..devices.models import Device
from ..devices.registry import DeviceEnumerator, DeviceRegistry
from ..encoder.events import TERMINAL_KINDS, EventKind, Subscription
from ..encoder.invocation import build_invocation
from ..encoder.options import (
    EncoderProcessOptions,
    HlsMuxingOptions,
    StreamOptions,
    TranscodeOptions,
)
from ..encoder.process import EncoderProcess
from ..encoder.supervisor import EncoderSupervisor, InvocationBuilder
from ..exceptions import (
    DeviceNotFoundError,
    DeviceUnavailableError,
    InsufficientStorageError,
    InvalidStateError,
    ProcessCrashError,
    SessionNotFoundError,
    StartCancelledError,
    StartTimeoutError,
)
from ..utils.disk import DiskSpace
from .cleanup import CleanupScheduler
from .housekeeping import HousekeepingLoop
from .output import OutputLayout
from .readiness import ReadinessMonitor
from .sessions import Session, SessionStatus, SessionStore, StatusFilter
from .settings import EngineSettings
from .status import SessionStatusBroadcaster

LOGGER = logging.getLogger(__name__)

DiskProbe = Callable[[int], DiskSpace]


class StreamCoordinator:
    """Start and stop camera publishing sessions.

    Owns three arenas: the :class:`DeviceRegistry`, the
    :class:`EncoderSupervisor` and the :class:`SessionStore`. A failed start
    always unwinds completely (encoder stopped, device released, record
    deleted); after a session is running, encoder failures are reported
    through the session status instead of exceptions.
    """

    def __init__(
        self,
        settings: EngineSettings,
        *,
        enumerator: Optional[DeviceEnumerator] = None,
        registry: Optional[DeviceRegistry] = None,
        supervisor: Optional[EncoderSupervisor] = None,
        store: Optional[SessionStore] = None,
        layout: Optional[OutputLayout] = None,
        readiness: Optional[ReadinessMonitor] = None,
        cleanup: Optional[CleanupScheduler] = None,
        broadcaster: Optional[SessionStatusBroadcaster] = None,
        invocation_builder: Optional[InvocationBuilder] = None,
        disk_probe: Optional[DiskProbe] = None,
        platform: Optional[str] = None,
    ) -> None:
        self._settings = settings
        self._layout = layout or OutputLayout(settings.output_dir, url_prefix=settings.hls_url_prefix)
        self._registry = registry or DeviceRegistry(enumerator)
        builder = invocation_builder or partial(
            build_invocation,
            ffmpeg_binary=settings.ffmpeg_path,
            platform=platform,
        )
        self._supervisor = supervisor or EncoderSupervisor(builder)
        self._store = store or SessionStore()
        self._readiness = readiness or ReadinessMonitor(
            self._layout,
            interval=settings.readiness_interval,
        )
        self._cleanup = cleanup or CleanupScheduler(
            self._layout,
            delay=settings.cleanup_delay,
            retry_delay=settings.cleanup_retry_delay,
            max_attempts=settings.cleanup_max_attempts,
        )
        self._broadcaster = broadcaster
        self._disk_probe: DiskProbe = disk_probe or self._layout.disk_usage

        self._guard = threading.Lock()
        self._session_locks: dict[str, threading.Lock] = {}
        self._cancel_events: dict[str, threading.Event] = {}
        self._monitors: dict[str, threading.Thread] = {}
        self._closed = False

        self._housekeeping = HousekeepingLoop(settings.housekeeping_interval)
        self._housekeeping.add_task("cleanup", self._run_cleanup)
        self._housekeeping.add_task("retention", self._evict_sessions)
        self._housekeeping.add_task(
            "orphans",
            self._sweep_orphans,
            every=settings.orphan_sweep_interval,
        )

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def start(self, device_id: str, options: Optional[StreamOptions] = None) -> Session:
        """Reserve ``device_id``, launch its encoder and wait for HLS output.

        Returns the ``running`` session. Raises
        :class:`InsufficientStorageError`, :class:`DeviceNotFoundError`,
        :class:`DeviceUnavailableError` or :class:`StartTimeoutError`; any
        failure leaves no reservation, encoder or session record behind.
        """

        self._ensure_open()
        stream = options or StreamOptions()

        space = self._disk_probe(self._settings.min_free_bytes)
        if not space.sufficient:
            LOGGER.warning(
                "Refusing to start stream for %s: %d bytes free, %d required",
                device_id,
                space.available,
                space.required,
            )
            raise InsufficientStorageError(space.available, space.required)

        device = self._registry.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        if not self._registry.is_available(device_id):
            raise DeviceUnavailableError(device_id, device.status.value)

        session = self._store.create(device_id, stream)
        session_id = session.id
        cancel = threading.Event()
        with self._guard:
            self._cancel_events[session_id] = cancel
        lock = self._session_lock(session_id)

        reserved = False
        created_dir = False
        handle: Optional[EncoderProcess] = None
        try:
            if not self._registry.reserve(device_id, session_id):
                current = self._registry.get(device_id)
                raise DeviceUnavailableError(device_id, current.status.value if current else None)
            reserved = True
            self._broadcast(session)

            output_dir = self._layout.ensure_stream_dir(session_id)
            created_dir = True
            if cancel.is_set():
                raise StartCancelledError(session_id)
            handle = self._supervisor.create(
                session_id,
                self._process_options(device_id, output_dir, stream),
            )

            timeout = self._settings.start_timeout
            ready = self._readiness.wait_for_output(
                session_id,
                timeout,
                cancel,
                alive=lambda: not handle.exited,
            )
            if not ready:
                # A concurrent stop waits here until the session is marked failed.
                with lock:
                    if cancel.is_set():
                        raise StartCancelledError(session_id)
                    if handle.exited:
                        raise ProcessCrashError(
                            handle.error
                            or f"Encoder exited with code {handle.returncode} before producing output",
                            returncode=handle.returncode,
                        )
                    self._supervisor.remove_and_stop(session_id)
                    self._registry.release(device_id, session_id)
                    reserved = False
                    failed = self._store.mark_error(
                        session_id,
                        f"Stream failed to start: no HLS output within {timeout:g}s",
                    )
                self._broadcast(failed)
                raise StartTimeoutError(session_id, timeout, session=failed)

            with lock:
                if cancel.is_set():
                    raise StartCancelledError(session_id)
                running = self._store.mark_running(session_id, self._layout.hls_url(session_id))
                self._watch(session_id, device_id, handle)
        except Exception as exc:
            LOGGER.warning("Start of session %s on %s failed: %s", session_id, device_id, exc)
            self._unwind(
                session_id,
                device_id,
                handle,
                reserved=reserved,
                created_dir=created_dir,
            )
            raise
        finally:
            with self._guard:
                self._cancel_events.pop(session_id, None)

        LOGGER.info("Session %s streaming camera %s at %s", session_id, device_id, running.output_url)
        self._broadcast(running)
        return running

    def stop(self, session_id: str) -> Session:
        """Stop ``session_id`` and release its device.

        Idempotent: a ``stopped`` or ``stopping`` session is returned as-is,
        and an ``error`` session only has its leftovers torn down. A session
        still ``starting`` has its pending start cancelled.
        """

        self._store.require(session_id)
        with self._session_lock(session_id):
            session = self._store.require(session_id)
            status = session.status
            if status in (SessionStatus.STOPPED, SessionStatus.STOPPING):
                LOGGER.debug("Session %s already %s", session_id, status.value)
                return session
            if status is SessionStatus.STARTING:
                return self._cancel_start(session)
            if status is SessionStatus.ERROR:
                self._teardown(session)
                return session

            stopping = self._store.mark_stopping(session_id)
            self._broadcast(stopping)
            self._teardown(session)
            stopped = self._store.mark_stopped(session_id)
        LOGGER.info("Session %s stopped", session_id)
        self._broadcast(stopped)
        return stopped

    def get(self, session_id: str) -> Session:
        return self._store.require(session_id)

    def describe(self, session_id: str) -> dict[str, Any]:
        """Session snapshot plus live encoder details when a process exists."""

        payload = self.get(session_id).to_dict()
        handle = self._supervisor.get(session_id)
        payload["encoder"] = handle.to_dict() if handle else None
        return payload

    def list_sessions(self, status_filter: StatusFilter = None) -> list[Session]:
        return self._store.list(status_filter)

    def active_count(self) -> int:
        return len(self._store.list("active"))

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------
    def refresh_devices(self) -> list[Device]:
        return self._registry.refresh()

    def list_devices(self) -> list[Device]:
        return self._registry.list_devices()

    def get_device(self, device_id: str) -> Device:
        device = self._registry.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------
    def start_housekeeping(self) -> None:
        self._layout.ensure_base()
        self._housekeeping.start()

    def run_housekeeping(self) -> dict[str, list[str]]:
        """Run every sweep once, regardless of its schedule."""

        return {
            "cleaned": self._run_cleanup(),
            "evicted": self._evict_sessions(),
            "orphans": self._sweep_orphans(),
        }

    def shutdown(self) -> None:
        """Kill every encoder and stop background work. Safe to call twice."""

        with self._guard:
            if self._closed:
                return
            self._closed = True
            events = list(self._cancel_events.values())
        for event in events:
            event.set()
        self._housekeeping.stop()
        killed = self._supervisor.kill_all()
        for session in self._store.list("active"):
            self._registry.release(session.device_id, session.id)
            try:
                stopped = self._store.mark_stopped(session.id)
            except (InvalidStateError, SessionNotFoundError):
                continue
            self._broadcast(stopped)
        if self._broadcaster is not None:
            self._broadcaster.close()
        LOGGER.info("Stream coordinator shut down (%d encoder(s) killed)", killed)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def supervisor(self) -> EncoderSupervisor:
        return self._supervisor

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def layout(self) -> OutputLayout:
        return self._layout

    @property
    def cleanup(self) -> CleanupScheduler:
        return self._cleanup

    @property
    def closed(self) -> bool:
        with self._guard:
            return self._closed

    def wait_for_monitor(self, session_id: str, timeout: Optional[float] = None) -> bool:
        """Block until the exit monitor for ``session_id`` has finished."""

        with self._guard:
            thread = self._monitors.get(session_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _ensure_open(self) -> None:
        with self._guard:
            if self._closed:
                raise InvalidStateError("Stream coordinator is shut down")

    def _session_lock(self, session_id: str) -> threading.Lock:
        with self._guard:
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._session_locks[session_id] = lock
            return lock

    def _forget_session(self, session_id: str) -> None:
        with self._guard:
            self._session_locks.pop(session_id, None)
            self._monitors.pop(session_id, None)

    def _process_options(
        self,
        device_id: str,
        output_dir: Path,
        stream: StreamOptions,
    ) -> EncoderProcessOptions:
        transcode = TranscodeOptions(
            device_id=device_id,
            output_dir=output_dir,
            stream=stream,
            hls=HlsMuxingOptions(playlist_name=self._layout.playlist_name),
        )
        return EncoderProcessOptions(
            transcode=transcode,
            start_grace=self._settings.process_start_grace,
            stop_grace=self._settings.stop_grace,
            kill_grace=self._settings.kill_grace,
            assume_started_on_timeout=self._settings.assume_started_on_timeout,
        )

    def _cancel_start(self, session: Session) -> Session:
        session_id = session.id
        with self._guard:
            cancel = self._cancel_events.get(session_id)
        if cancel is not None:
            cancel.set()
        LOGGER.info("Cancelling start of session %s", session_id)
        self._teardown(session, schedule_cleanup=False)
        try:
            stopped = self._store.mark_stopped(session_id)
        except SessionNotFoundError:
            # The start unwind already removed the record.
            return replace(session, status=SessionStatus.STOPPED)
        self._broadcast(stopped)
        return stopped

    def _teardown(self, session: Session, *, schedule_cleanup: bool = True) -> None:
        self._supervisor.remove_and_stop(session.id)
        self._registry.release(session.device_id, session.id)
        if schedule_cleanup:
            self._cleanup.schedule(session.id)

    def _unwind(
        self,
        session_id: str,
        device_id: str,
        handle: Optional[EncoderProcess],
        *,
        reserved: bool,
        created_dir: bool,
    ) -> None:
        self._supervisor.remove_and_stop(session_id)
        if handle is not None:
            # A concurrent stop may have detached the handle before it spawned.
            handle.stop()
            self._supervisor.discard(session_id, handle)
        if reserved:
            self._registry.release(device_id, session_id)
        self._store.delete(session_id)
        if created_dir:
            self._cleanup.schedule(session_id)
        if self._broadcaster is not None:
            self._broadcaster.forget(session_id)
        self._forget_session(session_id)

    def _watch(self, session_id: str, device_id: str, handle: EncoderProcess) -> None:
        subscription = handle.subscribe(TERMINAL_KINDS)
        thread = threading.Thread(
            target=self._monitor_exit,
            args=(session_id, device_id, handle, subscription),
            name=f"session-monitor-{session_id[:8]}",
            daemon=True,
        )
        with self._guard:
            self._monitors[session_id] = thread
        thread.start()

    def _monitor_exit(
        self,
        session_id: str,
        device_id: str,
        handle: EncoderProcess,
        subscription: Subscription,
    ) -> None:
        with subscription:
            event = subscription.get()
        if event is None:  # pragma: no cover - blocking get always yields
            return

        snapshot: Optional[Session] = None
        with self._session_lock(session_id):
            current = self._store.get(session_id)
            if current is not None and current.status is SessionStatus.RUNNING:
                try:
                    if event.kind is EventKind.ERROR:
                        message = event.message or f"Encoder exited with code {event.returncode}"
                        snapshot = self._store.mark_error(session_id, message)
                    else:
                        snapshot = self._store.mark_stopped(session_id)
                except (InvalidStateError, SessionNotFoundError):
                    snapshot = None
            self._supervisor.discard(session_id, handle)
            self._registry.release(device_id, session_id)
            if snapshot is not None:
                self._cleanup.schedule(session_id)

        if snapshot is not None:
            LOGGER.warning(
                "Encoder for session %s ended on its own (%s)",
                session_id,
                snapshot.status.value,
            )
            self._broadcast(snapshot)

    def _broadcast(self, session: Session) -> None:
        if self._broadcaster is None:
            return
        try:
            self._broadcaster.publish(session)
        except Exception:  # pragma: no cover - defensive
            LOGGER.debug("Failed to broadcast status for %s", session.id, exc_info=True)

    def _run_cleanup(self) -> list[str]:
        return self._cleanup.run_due()

    def _evict_sessions(self) -> list[str]:
        evicted = self._store.evict_inactive(self._settings.session_retention)
        for session_id in evicted:
            self._forget_session(session_id)
            if self._broadcaster is not None:
                self._broadcaster.forget(session_id)
        return evicted

    def _sweep_orphans(self) -> list[str]:
        known = self._store.ids() | set(self._supervisor.active_session_ids())
        return self._cleanup.sweep_orphans(known)


__all__ = ["DiskProbe", "StreamCoordinator"]
