"""Escalating shutdown sequence for encoder processes."""
from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import Optional

LOGGER = logging.getLogger(__name__)

QUIT_COMMAND = "q\n"


@dataclass(frozen=True)
class StopResult:
    """Outcome of attempting to stop an encoder."""

    returncode: Optional[int]
    forced: bool


class StopStrategy:
    """Ask FFmpeg to quit over stdin, then fall back to SIGKILL."""

    def __init__(self, *, graceful_timeout: float = 5.0, kill_timeout: float = 2.0) -> None:
        self._graceful_timeout = max(0.0, graceful_timeout)
        self._kill_timeout = max(0.0, kill_timeout)

    def shutdown(self, process: subprocess.Popen, exited: threading.Event) -> StopResult:
        """Stop ``process``; ``exited`` is set once the process has been reaped."""

        self._send_quit(process)
        if exited.wait(self._graceful_timeout):
            LOGGER.info("Encoder (pid=%s) exited with %s", process.pid, process.returncode)
            return StopResult(returncode=process.returncode, forced=False)

        LOGGER.warning(
            "Encoder (pid=%s) still running %.1fs after quit; sending SIGKILL",
            process.pid,
            self._graceful_timeout,
        )
        self.kill(process)
        if not exited.wait(self._kill_timeout):
            LOGGER.error("Encoder (pid=%s) still running after SIGKILL attempt", process.pid)
        return StopResult(returncode=process.returncode, forced=True)

    def kill(self, process: subprocess.Popen) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            LOGGER.debug("Encoder (pid=%s) already gone", process.pid)
        except OSError:  # pragma: no cover - system dependent
            LOGGER.exception("Failed to kill encoder process (pid=%s)", process.pid)

    def _send_quit(self, process: subprocess.Popen) -> None:
        stdin = process.stdin
        if stdin is None or stdin.closed:
            return
        try:
            LOGGER.info("Sending quit to encoder (pid=%s)", process.pid)
            stdin.write(QUIT_COMMAND)
            stdin.flush()
        except (BrokenPipeError, ValueError, OSError) as exc:
            LOGGER.debug("Could not write quit command to encoder: %s", exc)
        finally:
            try:
                stdin.close()
            except (BrokenPipeError, OSError):
                pass


__all__ = ["QUIT_COMMAND", "StopResult", "StopStrategy"]
