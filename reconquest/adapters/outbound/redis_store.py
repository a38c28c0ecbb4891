"""Redis and in-memory implementations of the SnapshotStore port."""

from __future__ import annotations

import logging
import os

from domain.ports import SnapshotStore

logger = logging.getLogger(__name__)


class RedisSnapshotStore(SnapshotStore):
    """SnapshotStore backed by Redis string keys (no expiry)."""

    PREFIX = "reconquest:"

    def __init__(self, redis_client):
        self._redis = redis_client

    def _key(self, key: str) -> str:
        return f"{self.PREFIX}{key}"

    # ── SnapshotStore interface ──────────────────────────────────────────

    def get(self, key: str) -> str | None:
        raw = self._redis.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return raw

    def set(self, key: str, payload: str) -> None:
        self._redis.set(self._key(key), payload)

    def delete(self, key: str) -> None:
        self._redis.delete(self._key(key))

    def close(self) -> None:
        self._redis.close()


class InMemorySnapshotStore(SnapshotStore):
    """SnapshotStore using a plain dict.

    Intended for testing and for sessions where nothing must outlive the
    process.
    """

    def __init__(self):
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def set(self, key: str, payload: str) -> None:
        self._store[key] = payload

    def delete(self, key: str) -> None:
        self._store.pop(key, None)


def connect_redis(redis_url: str | None = None):
    """Return a connected Redis client, or None if Redis is unreachable."""
    redis_url = redis_url or os.environ.get("REDIS_URL")
    if not redis_url:
        return None
    import redis

    try:
        client = redis.from_url(redis_url)
        client.ping()
    except redis.RedisError as exc:
        logger.warning("Redis unavailable at %s (%s), falling back to SQL storage", redis_url, exc)
        return None
    return client
