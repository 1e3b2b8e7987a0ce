"""
kudos.engine.cache — Ephemeral Key-Value Stores & Read-View Cache
==================================================================

The rate limiter and the profile/leaderboard read views sit on a small
key-value contract (get / set-with-expiry / incr / expire / delete plus an
``is_connected`` probe).  Two implementations:

* :class:`RedisStore` — redis-py client; errors surface as
  :class:`StoreUnavailable` so callers can fail open.
* :class:`MemoryStore` — thread-safe in-process store with expiries, for
  single-process deployments and tests.

:class:`ViewCache` layers JSON read views and their invalidation on top.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

import redis

from kudos.constants import (
    LEADERBOARD_CACHE_KEY,
    LEADERBOARD_DEFAULT_LIMIT,
    LEADERBOARD_TYPES,
    PROFILE_CACHE_KEY,
)

logger = logging.getLogger(__name__)

__all__ = ["KeyValueStore", "MemoryStore", "RedisStore", "StoreUnavailable", "ViewCache"]


class StoreUnavailable(Exception):
    """The ephemeral store could not be reached or rejected the command."""


class KeyValueStore(Protocol):
    def is_connected(self) -> bool: ...

    def get(self, key: str) -> str | None: ...

    def set(
        self,
        key: str,
        value: str,
        *,
        ex: int | None = None,
        px: int | None = None,
        nx: bool = False,
    ) -> bool: ...

    def incr(self, key: str) -> int: ...

    def expire(self, key: str, seconds: int) -> bool: ...

    def delete(self, *keys: str) -> int: ...


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------
class RedisStore:
    """redis-py backed store.

    ``is_connected`` pings at most once per ``probe_interval`` seconds and
    remembers the answer; any command failure marks the store unhealthy
    until the next successful probe.
    """

    def __init__(
        self,
        client: redis.Redis | None,
        *,
        probe_interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._probe_interval = probe_interval
        self._clock = clock
        self._healthy = False
        self._last_probe: float | None = None

    @classmethod
    def from_url(cls, url: str | None, *, timeout: float = 2.0) -> RedisStore:
        """Build a store for *url*; ``None`` yields a permanently disconnected store."""
        if not url:
            logger.warning("Redis disabled — no URL configured; rate limits fail open")
            return cls(None)
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )
        return cls(client)

    def is_connected(self) -> bool:
        if self._client is None:
            return False
        now = self._clock()
        if self._last_probe is not None and now - self._last_probe < self._probe_interval:
            return self._healthy
        self._last_probe = now
        try:
            self._healthy = bool(self._client.ping())
        except redis.RedisError as exc:
            if self._healthy:
                logger.warning("Redis probe failed: %s", exc)
            self._healthy = False
        return self._healthy

    def _call(self, command: str, *args: Any, **kwargs: Any) -> Any:
        if self._client is None:
            raise StoreUnavailable("Redis is not configured")
        try:
            return getattr(self._client, command)(*args, **kwargs)
        except redis.RedisError as exc:
            self._healthy = False
            raise StoreUnavailable(f"Redis {command.upper()} failed: {exc}") from exc

    def get(self, key: str) -> str | None:
        value = self._call("get", key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(
        self,
        key: str,
        value: str,
        *,
        ex: int | None = None,
        px: int | None = None,
        nx: bool = False,
    ) -> bool:
        return bool(self._call("set", key, value, ex=ex, px=px, nx=nx))

    def incr(self, key: str) -> int:
        return int(self._call("incr", key))

    def expire(self, key: str, seconds: int) -> bool:
        return bool(self._call("expire", key, seconds))

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self._call("delete", *keys))


# ---------------------------------------------------------------------------
# In-process store
# ---------------------------------------------------------------------------
class MemoryStore:
    """Thread-safe in-process store with per-key expiry.

    Expired keys are dropped lazily on access and swept hourly.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        # key → (value, expires_at or None)
        self._data: dict[str, tuple[str, float | None]] = {}
        self._last_cleanup = clock()

    def is_connected(self) -> bool:
        return True

    def _live(self, key: str, now: float) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] is not None and entry[1] <= now:
            del self._data[key]
            return None
        return entry

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < 3600:
            return
        self._last_cleanup = now
        expired = [k for k, (_, exp) in self._data.items() if exp is not None and exp <= now]
        for k in expired:
            del self._data[k]

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live(key, self._clock())
            return entry[0] if entry else None

    def set(
        self,
        key: str,
        value: str,
        *,
        ex: int | None = None,
        px: int | None = None,
        nx: bool = False,
    ) -> bool:
        now = self._clock()
        expires_at = None
        if px is not None:
            expires_at = now + px / 1000
        elif ex is not None:
            expires_at = now + ex
        with self._lock:
            self._maybe_cleanup(now)
            if nx and self._live(key, now) is not None:
                return False
            self._data[key] = (str(value), expires_at)
            return True

    def incr(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            entry = self._live(key, now)
            if entry is None:
                self._data[key] = ("1", None)
                return 1
            value = int(entry[0]) + 1
            self._data[key] = (str(value), entry[1])
            return value

    def expire(self, key: str, seconds: int) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._live(key, now)
            if entry is None:
                return False
            self._data[key] = (entry[0], now + seconds)
            return True

    def delete(self, *keys: str) -> int:
        now = self._clock()
        removed = 0
        with self._lock:
            for key in keys:
                if self._live(key, now) is not None:
                    del self._data[key]
                    removed += 1
        return removed


# ---------------------------------------------------------------------------
# Read views
# ---------------------------------------------------------------------------
class ViewCache:
    """JSON read-view cache over a :class:`KeyValueStore`.

    Every operation is best-effort: a disconnected or failing store turns
    reads into misses and writes/invalidations into logged no-ops.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get_json(self, key: str) -> Any | None:
        if not self._store.is_connected():
            return None
        try:
            raw = self._store.get(key)
        except StoreUnavailable as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding corrupt cache entry %s", key)
            return None

    def set_json(self, key: str, value: Any, ttl: int) -> None:
        if not self._store.is_connected():
            return
        try:
            self._store.set(key, json.dumps(value, default=str), ex=ttl)
        except StoreUnavailable as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    def invalidate(self, user_id: str) -> None:
        """Drop the user's profile view and the default leaderboards.

        Raises :class:`StoreUnavailable` so a side-effect queue can retry.
        """
        if not self._store.is_connected():
            return
        keys = [PROFILE_CACHE_KEY.format(user_id=user_id)]
        keys.extend(
            LEADERBOARD_CACHE_KEY.format(type=board, limit=LEADERBOARD_DEFAULT_LIMIT)
            for board in LEADERBOARD_TYPES
        )
        self._store.delete(*keys)
        logger.debug("Invalidated cached views for %s", user_id)
