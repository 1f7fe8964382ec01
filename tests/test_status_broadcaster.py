from __future__ import annotations

import json

from redis.exceptions import ConnectionError as RedisConnectionError

from camstream.engine import SessionStatusBroadcaster, SessionStore


class FakeRedis:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.values: dict[str, tuple[str, object]] = {}
        self.published: list[tuple[str, str]] = []
        self.closed = False

    def set(self, key, value, ex=None):
        if self.fail:
            raise RedisConnectionError("connection refused")
        self.values[key] = (value, ex)

    def publish(self, channel, message):
        self.published.append((channel, message))

    def delete(self, key):
        self.values.pop(key, None)

    def close(self):
        self.closed = True


def _session():
    store = SessionStore()
    return store.create("cam0")


def test_publish_sets_key_and_broadcasts():
    client = FakeRedis()
    broadcaster = SessionStatusBroadcaster(
        redis_url=None,
        prefix="test",
        channel="test:sessions",
        ttl_seconds=60,
        client=client,
    )
    session = _session()

    broadcaster.publish(session)

    value, ttl = client.values[f"test:session:{session.id}"]
    payload = json.loads(value)
    assert ttl == 60
    assert payload["origin"] == "camstream"
    assert payload["session"]["id"] == session.id
    assert payload["session"]["status"] == "starting"
    assert client.published == [("test:sessions", value)]


def test_forget_removes_key():
    client = FakeRedis()
    broadcaster = SessionStatusBroadcaster(redis_url=None, client=client)
    session = _session()
    broadcaster.publish(session)

    broadcaster.forget(session.id)

    assert broadcaster.key_for(session.id) not in client.values


def test_redis_error_drops_client():
    client = FakeRedis(fail=True)
    broadcaster = SessionStatusBroadcaster(redis_url=None, client=client)

    broadcaster.publish(_session())

    assert client.closed
    assert broadcaster.last_error.startswith("Failed to broadcast session status")
    assert not broadcaster.configured
    broadcaster.publish(_session())


def test_without_url_is_inert():
    broadcaster = SessionStatusBroadcaster(redis_url="")

    assert not broadcaster.configured
    assert not broadcaster.available
    assert broadcaster.last_error == "Redis URL not configured"
    broadcaster.publish(_session())
