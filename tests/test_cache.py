"""
Tests for classifier response caches (in-memory and Redis).
"""

import asyncio
import pytest

from llm_moderation.cache import (
    InMemoryResponseCache,
    RedisResponseCache,
    cache_key,
    create_response_cache,
)
from llm_moderation.models import ClassifierResponse

from conftest import make_scores


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def response(**scores):
    return ClassifierResponse(scores=make_scores(**scores), uncertainty=0.2)


class TestCacheKey:
    """Key derivation."""

    def test_stable(self):
        assert cache_key("m", "hello") == cache_key("m", "hello")

    def test_model_scoped(self):
        assert cache_key("m1", "hello") != cache_key("m2", "hello")
        assert cache_key("m1", "hello").startswith("m1:")

    def test_text_not_embedded(self):
        assert "hello" not in cache_key("m", "hello there")


class TestInMemoryResponseCache:
    """TTL semantics with an injected clock."""

    def test_set_and_get(self):
        cache = InMemoryResponseCache()
        value = response(hate=0.4)
        asyncio.run(cache.set("k", value, 60))
        assert asyncio.run(cache.get("k")) == value

    def test_missing_key(self):
        assert asyncio.run(InMemoryResponseCache().get("nope")) is None

    def test_expires_at_ttl(self):
        clock = FakeClock()
        cache = InMemoryResponseCache(clock=clock)
        asyncio.run(cache.set("k", response(), 10))
        clock.now += 9
        assert asyncio.run(cache.get("k")) is not None
        clock.now += 1
        assert asyncio.run(cache.get("k")) is None
        assert len(cache) == 0

    def test_overwrite_refreshes(self):
        clock = FakeClock()
        cache = InMemoryResponseCache(clock=clock)
        asyncio.run(cache.set("k", response(spam=0.1), 10))
        clock.now += 8
        asyncio.run(cache.set("k", response(spam=0.2), 10))
        clock.now += 8
        assert asyncio.run(cache.get("k")).scores["spam"] == 0.2

    def test_cleanup(self):
        clock = FakeClock()
        cache = InMemoryResponseCache(clock=clock)
        asyncio.run(cache.set("old", response(), 5))
        asyncio.run(cache.set("new", response(), 50))
        clock.now += 10
        asyncio.run(cache.cleanup())
        assert len(cache) == 1
        assert asyncio.run(cache.get("new")) is not None

    def test_set_sweeps_unread_expired_entries(self):
        clock = FakeClock()
        cache = InMemoryResponseCache(clock=clock, sweep_interval=60)
        for i in range(5):
            asyncio.run(cache.set(f"k{i}", response(), 10))
        clock.now += 61
        asyncio.run(cache.set("fresh", response(), 10))
        assert len(cache) == 1

    def test_sweep_waits_for_interval(self):
        clock = FakeClock()
        cache = InMemoryResponseCache(clock=clock, sweep_interval=60)
        asyncio.run(cache.set("old", response(), 1))
        clock.now += 30
        asyncio.run(cache.set("new", response(), 100))
        assert len(cache) == 2
        clock.now += 31
        asyncio.run(cache.set("newer", response(), 100))
        assert len(cache) == 2


class TestFactory:
    """create_response_cache."""

    def test_memory(self):
        assert isinstance(create_response_cache("memory"), InMemoryResponseCache)

    def test_redis_requires_url(self):
        with pytest.raises(ValueError):
            create_response_cache("redis")

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_response_cache("memcached")


class TestRedisResponseCache:
    """Redis cache, skipped when no local server is reachable."""

    @pytest.fixture
    def redis_available(self):
        try:
            import redis
            r = redis.Redis(host="localhost", port=6379, db=15, socket_connect_timeout=0.5)
            r.ping()
            return True
        except Exception:
            pytest.skip("Redis not available for testing")

    def test_round_trip_with_expiry(self, redis_available):
        async def scenario():
            cache = RedisResponseCache("redis://localhost:6379/15", prefix="modcache-test:")
            value = response(scam=0.7)
            await cache.set("k", value, 30)
            got = await cache.get("k")
            ttl = await cache.redis.ttl("modcache-test:k")
            await cache.redis.delete("modcache-test:k")
            await cache.aclose()
            return got, ttl

        got, ttl = asyncio.run(scenario())
        assert got.scores["scam"] == 0.7
        assert 0 < ttl <= 30
