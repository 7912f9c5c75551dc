import base64, hashlib, time
from threading import Lock
from typing import Callable, Dict, Optional, Protocol, Tuple
import orjson

from .models import ClassifierResponse


class ResponseCache(Protocol):
    """Protocol for classifier response cache implementations."""
    async def get(self, key: str) -> Optional[ClassifierResponse]: ...
    async def set(self, key: str, value: ClassifierResponse, ttl_seconds: float) -> None: ...
    async def cleanup(self) -> None: ...


def cache_key(model: str, redacted_text: str) -> str:
    """
    Derive a cache key from the model identifier and a hash of the redacted text.

    Never pass unredacted text here.
    """
    digest = hashlib.sha256(redacted_text.encode("utf-8")).digest()
    return f"{model}:{base64.b64encode(digest).decode('ascii')}"


class InMemoryResponseCache:
    """
    In-process TTL cache. Entries are independent; writes are idempotent overwrites.

    Expired entries are dropped lazily on ``get`` and swept from ``set`` at most
    once per ``sweep_interval`` seconds, so keys that are never read again do not
    accumulate in a long-running process.
    """
    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0):
        self._entries: Dict[str, Tuple[float, ClassifierResponse]] = {}
        self._lock = Lock()
        self._clock = clock
        self.sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    async def get(self, key: str) -> Optional[ClassifierResponse]:
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            expires_at, value = hit
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: ClassifierResponse, ttl_seconds: float) -> None:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            self._entries[key] = (now + ttl_seconds, value)

    async def cleanup(self) -> None:
        now = self._clock()
        with self._lock:
            self._sweep(now)

    def _sweep(self, now: float) -> None:
        # caller holds the lock
        for k, (exp, _) in list(self._entries.items()):
            if exp <= now:
                del self._entries[k]
        self._next_sweep = now + self.sweep_interval

    def __len__(self) -> int:
        return len(self._entries)


class RedisResponseCache:
    """
    Redis-backed response cache shared across processes.

    Values are stored as JSON (orjson) with a server-side expiry, so
    expired entries never come back and ``cleanup`` has nothing to do.
    """

    def __init__(self, redis_url: str, prefix: str = "modcache:"):
        """
        Initialize Redis response cache.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
            prefix: Key namespace for cache entries
        """
        try:
            import redis.asyncio as aioredis
        except ImportError:
            raise RuntimeError("redis package required for RedisResponseCache. Install with: pip install redis")

        self.redis = aioredis.from_url(redis_url, decode_responses=False)
        self.prefix = prefix

    async def get(self, key: str) -> Optional[ClassifierResponse]:
        raw = await self.redis.get(self.prefix + key)
        if not raw:
            return None
        return ClassifierResponse.model_validate(orjson.loads(raw))

    async def set(self, key: str, value: ClassifierResponse, ttl_seconds: float) -> None:
        await self.redis.setex(
            self.prefix + key,
            max(1, int(ttl_seconds)),
            orjson.dumps(value.model_dump()),
        )

    async def cleanup(self) -> None:
        """Expiration is handled by Redis TTL."""
        pass

    async def aclose(self) -> None:
        await self.redis.aclose()


def create_response_cache(backend: str = "memory", redis_url: Optional[str] = None) -> ResponseCache:
    """
    Factory function to create the configured response cache.

    Args:
        backend: 'memory' or 'redis'
        redis_url: Redis connection URL (required if backend='redis')

    Returns:
        ResponseCache implementation
    """
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis_url required for redis backend")
        return RedisResponseCache(redis_url)
    elif backend == "memory":
        return InMemoryResponseCache()
    else:
        raise ValueError(f"Unknown response cache backend: {backend}")
