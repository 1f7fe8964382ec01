"""Redis-backed broadcaster for session status snapshots."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import redis
from redis import Redis
from redis.exceptions import RedisError

from .sessions import Session

LOGGER = logging.getLogger(__name__)


class SessionStatusBroadcaster:
    """Store the latest snapshot per session in Redis and publish changes.

    Each snapshot is written to ``<prefix>:session:<id>`` (with a TTL when
    ``ttl_seconds`` is positive) and, when a channel is configured, published
    on it. Without a URL the broadcaster is inert.
    """

    def __init__(
        self,
        *,
        redis_url: Optional[str],
        prefix: str = "camstream",
        channel: Optional[str] = None,
        ttl_seconds: int = 3600,
        client: Optional[Redis] = None,
    ) -> None:
        self._redis_url = (redis_url or "").strip()
        self._prefix = (prefix or "").strip() or "camstream"
        self._channel = channel.strip() if isinstance(channel, str) and channel.strip() else None
        self._ttl = max(0, int(ttl_seconds))
        self._client: Optional[Redis] = client
        self._last_error: Optional[str] = None
        if self._client is None:
            self._connect()

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------
    def _connect(self) -> None:
        if not self._redis_url:
            self._last_error = "Redis URL not configured"
            self._client = None
            return
        try:
            client = redis.from_url(
                self._redis_url,
                socket_timeout=3,
                health_check_interval=30,
            )
            client.ping()
        except (RedisError, ValueError) as exc:
            LOGGER.warning("Failed to connect to Redis for status broadcasting: %s", exc)
            self._client = None
            self._last_error = f"Failed to connect to Redis: {exc}"
            return
        self._client = client
        self._last_error = None

    def _ensure_client(self) -> Optional[Redis]:
        client = self._client
        if client is not None:
            return client
        self._connect()
        return self._client

    def _drop_client(self, client: Redis) -> None:
        try:
            client.close()
        except RedisError:  # pragma: no cover - defensive
            LOGGER.debug("Failed to close Redis client", exc_info=True)
        self._client = None

    def close(self) -> None:
        client = self._client
        if client is not None:
            self._drop_client(client)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def configured(self) -> bool:
        return bool(self._redis_url) or self._client is not None

    @property
    def available(self) -> bool:
        if not self.configured:
            return False
        return self._ensure_client() is not None

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def publish(self, session: Session) -> None:
        """Persist and broadcast ``session``; Redis failures are logged and dropped."""

        if not self.configured:
            return
        client = self._ensure_client()
        if client is None:
            return
        payload = self._serialize(session)
        redis_key = self.key_for(session.id)
        try:
            if self._ttl > 0:
                client.set(redis_key, payload, ex=self._ttl)
            else:
                client.set(redis_key, payload)
            if self._channel:
                client.publish(self._channel, payload)
            self._last_error = None
        except RedisError as exc:
            self._last_error = f"Failed to broadcast session status: {exc}"
            LOGGER.debug("Failed to broadcast status for %s: %s", session.id, exc)
            self._drop_client(client)

    def forget(self, session_id: str) -> None:
        if not self.configured:
            return
        client = self._ensure_client()
        if client is None:
            return
        try:
            client.delete(self.key_for(session_id))
        except RedisError:
            LOGGER.debug("Failed to clear status key for %s", session_id, exc_info=True)

    def key_for(self, session_id: str) -> str:
        return f"{self._prefix}:session:{session_id}"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _serialize(session: Session) -> str:
        payload: dict[str, Any] = {
            "session": session.to_dict(),
            "origin": "camstream",
            "published_at": datetime.now(timezone.utc).isoformat(),
        }
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


__all__ = ["SessionStatusBroadcaster"]
