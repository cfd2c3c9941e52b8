# Overview: Best-effort, TTL-bounded read-through cache for query results.

"""
Query Result Cache

WHY: Ledger and catalog listings are recomputed from flat rows on every
call. Identical queries inside a short window (60 s by default) are served
from this cache instead.

POLICY:
- The cache is never the source of truth. Entries expire by TTL only; writes
  do not invalidate, so a listing may be up to TTL seconds stale.
- Values are stored as JSON text, so a hit returns exactly what was stored.
- Any backend failure (connection refused, timeout, bad payload) is logged
  and the caller computes the result directly. A request never fails
  because of the cache.

BACKENDS:
- "memory": per-process dict guarded by a lock (default, tests)
- "redis":  shared across workers via SETEX (CACHE_REDIS_URL)
- "null":   caching disabled
"""

from __future__ import annotations

import hashlib
import json
import threading
import time

import redis
from flask import current_app


class MemoryBackend:
    """Process-local store of key -> (expires_at, payload)."""

    def __init__(self, clock=time.monotonic):
        self._entries: dict[str, tuple[float, str]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return payload

    def set(self, key: str, payload: str, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, payload)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisBackend:
    """Shared store using redis SETEX; keys expire server-side."""

    def __init__(self, client: redis.Redis, prefix: str = "salesledger:"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        client = redis.Redis.from_url(url, socket_timeout=0.5, socket_connect_timeout=0.5)
        return cls(client)

    def get(self, key: str) -> str | None:
        raw = self._client.get(self._prefix + key)
        if raw is None:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else raw

    def set(self, key: str, payload: str, ttl: int) -> None:
        self._client.setex(self._prefix + key, ttl, payload)

    def clear(self) -> None:
        for key in self._client.scan_iter(match=self._prefix + "*"):
            self._client.delete(key)


class NullBackend:
    def get(self, key: str) -> str | None:
        return None

    def set(self, key: str, payload: str, ttl: int) -> None:
        return None

    def clear(self) -> None:
        return None


def make_cache_key(namespace: str, signature: dict) -> str:
    """
    Build a cache key from the complete query signature.

    The signature must include the actor id so that tenants never share
    entries. Keys are order-independent over the signature's fields.
    """
    canonical = json.dumps(signature, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


class QueryCache:
    """Flask extension wrapping one backend with fail-open semantics."""

    def __init__(self, app=None):
        self.backend = NullBackend()
        self.default_ttl = 60
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        kind = (app.config.get("CACHE_BACKEND") or "memory").lower()
        self.default_ttl = int(app.config.get("CACHE_DEFAULT_TTL", 60))

        if kind == "redis":
            url = app.config.get("CACHE_REDIS_URL")
            if not url:
                raise RuntimeError("CACHE_BACKEND=redis requires CACHE_REDIS_URL")
            self.backend = RedisBackend.from_url(url)
        elif kind == "null" or self.default_ttl <= 0:
            self.backend = NullBackend()
        elif kind == "memory":
            self.backend = MemoryBackend()
        else:
            raise RuntimeError(f"Unknown CACHE_BACKEND: {kind}")

        app.extensions["query_cache"] = self

    def get(self, key: str):
        try:
            payload = self.backend.get(key)
            if payload is None:
                return None
            return json.loads(payload)
        except Exception as exc:
            current_app.logger.warning("Cache read failed for %s: %s", key, exc)
            return None

    def set(self, key: str, value, ttl: int | None = None) -> None:
        try:
            payload = json.dumps(value, separators=(",", ":"))
            self.backend.set(key, payload, ttl or self.default_ttl)
        except Exception as exc:
            current_app.logger.warning("Cache write failed for %s: %s", key, exc)

    def remember(self, key: str, compute, ttl: int | None = None):
        """
        Return the cached value for key, computing and storing it on a miss.

        compute() must return a JSON-serializable value. On a hit the stored
        JSON is decoded afresh, so callers may mutate what they get back.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = compute()
        self.set(key, value, ttl)
        # Round-trip so hits and misses hand back identical structures
        return json.loads(json.dumps(value, separators=(",", ":")))

    def clear(self) -> None:
        try:
            self.backend.clear()
        except Exception as exc:
            current_app.logger.warning("Cache clear failed: %s", exc)
