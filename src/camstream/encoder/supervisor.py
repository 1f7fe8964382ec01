"""Registry of encoder processes keyed by session id."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..exceptions import InvalidStateError
from .options import EncoderProcessOptions, Invocation, TranscodeOptions
from .process import EncoderProcess

LOGGER = logging.getLogger(__name__)

InvocationBuilder = Callable[[TranscodeOptions], Invocation]
ProcessFactory = Callable[[str, EncoderProcessOptions, Invocation], EncoderProcess]


class EncoderSupervisor:
    """Hold at most one :class:`EncoderProcess` per session id."""

    def __init__(
        self,
        invocation_builder: InvocationBuilder,
        *,
        process_factory: ProcessFactory = EncoderProcess,
    ) -> None:
        self._invocation_builder = invocation_builder
        self._process_factory = process_factory
        self._lock = threading.Lock()
        self._handles: dict[str, EncoderProcess] = {}

    def create(self, session_id: str, options: EncoderProcessOptions) -> EncoderProcess:
        """Register a handle for ``session_id`` and start it.

        The handle is removed again when :meth:`EncoderProcess.start` raises.
        """

        invocation = self._invocation_builder(options.transcode)
        with self._lock:
            if session_id in self._handles:
                raise InvalidStateError(f"An encoder already exists for session {session_id}")
            handle = self._process_factory(session_id, options, invocation)
            self._handles[session_id] = handle

        try:
            handle.start()
        except Exception:
            self._drop(session_id, handle)
            raise
        return handle

    def get(self, session_id: str) -> Optional[EncoderProcess]:
        with self._lock:
            return self._handles.get(session_id)

    def remove_and_stop(self, session_id: str) -> bool:
        with self._lock:
            handle = self._handles.pop(session_id, None)
        if handle is None:
            return False
        handle.stop()
        return True

    def discard(self, session_id: str, handle: Optional[EncoderProcess] = None) -> bool:
        """Forget the handle for ``session_id`` without stopping it.

        When ``handle`` is given the entry is only dropped if it is still that
        handle, so a stale monitor cannot remove a newer process.
        """

        return self._drop(session_id, handle)

    def kill_all(self) -> int:
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            try:
                handle.kill()
            except Exception:  # pragma: no cover - defensive
                LOGGER.debug("Failed to kill encoder for %s", handle.session_id, exc_info=True)
        if handles:
            LOGGER.info("Killed %d encoder process(es)", len(handles))
        return len(handles)

    def active_session_ids(self) -> list[str]:
        with self._lock:
            return list(self._handles)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def _drop(self, session_id: str, handle: Optional[EncoderProcess]) -> bool:
        with self._lock:
            current = self._handles.get(session_id)
            if current is None or (handle is not None and current is not handle):
                return False
            del self._handles[session_id]
        return True


__all__ = ["EncoderSupervisor", "InvocationBuilder"]
