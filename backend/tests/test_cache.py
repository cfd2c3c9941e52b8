"""
Query cache tests: TTL expiry, key construction, backend selection and
fail-open behaviour.
"""

import pytest

from salesledger import create_app
from salesledger.extensions import query_cache
from salesledger.services.cache_service import (
    MemoryBackend,
    NullBackend,
    QueryCache,
    RedisBackend,
    make_cache_key,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakeRedis:
    """Just enough of redis.Redis for RedisBackend."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        value = self.store.get(key)
        return value.encode("utf-8") if value is not None else None

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def scan_iter(self, match=None):
        prefix = (match or "*").rstrip("*")
        return [k for k in list(self.store) if k.startswith(prefix)]

    def delete(self, key):
        self.store.pop(key, None)


class TestMemoryBackend:

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        backend = MemoryBackend(clock=clock)
        backend.set("k", '{"a":1}', ttl=60)

        clock.now += 59
        assert backend.get("k") == '{"a":1}'

        clock.now += 1
        assert backend.get("k") is None

    def test_clear(self):
        backend = MemoryBackend()
        backend.set("k", "1", ttl=60)
        backend.clear()
        assert backend.get("k") is None


class TestRedisBackend:

    def test_set_get_with_prefix_and_ttl(self):
        client = FakeRedis()
        backend = RedisBackend(client)

        backend.set("sales:list:abc", '{"x":1}', ttl=60)

        assert client.ttls["salesledger:sales:list:abc"] == 60
        assert backend.get("sales:list:abc") == '{"x":1}'

    def test_clear_only_touches_own_prefix(self):
        client = FakeRedis()
        client.store["other:key"] = "keep"
        backend = RedisBackend(client)
        backend.set("mine", "1", ttl=60)

        backend.clear()

        assert client.store == {"other:key": "keep"}


class TestCacheKeys:

    def test_key_is_order_independent(self):
        a = make_cache_key("sales:list", {"user_id": 1, "page": 2, "per_page": 15})
        b = make_cache_key("sales:list", {"per_page": 15, "page": 2, "user_id": 1})
        assert a == b
        assert a.startswith("sales:list:")

    def test_key_differs_per_actor(self):
        a = make_cache_key("sales:list", {"user_id": 1, "page": 1})
        b = make_cache_key("sales:list", {"user_id": 2, "page": 1})
        assert a != b


class TestQueryCache:

    def test_remember_computes_once(self, app):
        calls = []

        def compute():
            calls.append(1)
            return {"value": len(calls)}

        first = query_cache.remember("k", compute)
        second = query_cache.remember("k", compute)

        assert first == second == {"value": 1}
        assert len(calls) == 1

    def test_hits_are_independent_copies(self, app):
        query_cache.remember("k", lambda: {"items": [1, 2]})
        got = query_cache.get("k")
        got["items"].append(3)
        assert query_cache.get("k") == {"items": [1, 2]}

    def test_unserializable_value_is_logged_not_raised(self, app, caplog):
        query_cache.set("k", {"bad": object()})
        assert query_cache.get("k") is None
        assert any("Cache write failed" in r.getMessage() for r in caplog.records)

    def test_backend_selection(self):
        cache = QueryCache()

        app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:", "CACHE_BACKEND": "null"})
        cache.init_app(app)
        assert isinstance(cache.backend, NullBackend)

        app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:", "CACHE_BACKEND": "memory", "CACHE_DEFAULT_TTL": 0})
        cache.init_app(app)
        assert isinstance(cache.backend, NullBackend)

        app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "CACHE_BACKEND": "redis",
            "CACHE_REDIS_URL": "redis://localhost:6379/0",
        })
        assert isinstance(query_cache.backend, RedisBackend)

    def test_redis_without_url_is_a_configuration_error(self):
        with pytest.raises(RuntimeError):
            create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:", "CACHE_BACKEND": "redis", "CACHE_REDIS_URL": None})
