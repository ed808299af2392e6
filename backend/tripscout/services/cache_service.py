"""Two-tier expiring cache: process-local dictionary plus optional Redis tier."""

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

import redis.asyncio as redis

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[T]):
    data: T
    expires_at: float


class TTLCache(Generic[T]):
    """Process-local cache with lazy eviction.

    An entry read at or after its expiry is removed and reported absent.
    There is no background sweep and no size bound.
    """

    def __init__(self, default_ttl: float, clock: Clock = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> T | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.data

    def set(self, key: str, data: T, ttl: float | None = None) -> None:
        expires_at = self._clock() + (self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._entries[key] = CacheEntry(data=data, expires_at=expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisCache:
    """Redis-backed persisted tier. Errors are logged and treated as a miss."""

    def __init__(self, redis_url: str = "", client: redis.Redis | None = None):
        self._redis_url = redis_url
        self._redis: redis.Redis | None = client
        self._disabled = client is None and not redis_url

    async def _get_redis(self) -> redis.Redis | None:
        if self._disabled:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, persisted cache disabled: {e}")
                self._redis = None
                self._disabled = True
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Get a decoded value. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.debug(f"Redis get failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Store a value with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except Exception as e:
            logger.debug(f"Redis set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.delete(key)
            return True
        except Exception:
            return False

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


class TieredCache(Generic[T]):
    """Fast local tier in front of the persisted tier, keyed identically.

    `encode`/`decode` convert values to and from JSON-compatible data for the
    persisted tier. A persisted hit back-fills the local tier.
    """

    def __init__(
        self,
        namespace: str,
        local: TTLCache[T],
        persisted: RedisCache | None = None,
        persisted_ttl: int = 15 * 60,
        encode: Callable[[T], Any] = lambda v: v,
        decode: Callable[[Any], T] = lambda v: v,
    ):
        self.namespace = namespace
        self.local = local
        self.persisted = persisted
        self.persisted_ttl = persisted_ttl
        self._encode = encode
        self._decode = decode

    def _persisted_key(self, key: str) -> str:
        return f"tripscout:{self.namespace}:{key}"

    async def get(self, key: str) -> T | None:
        value = self.local.get(key)
        if value is not None:
            logger.debug(f"Cache hit ({self.namespace}, local): {key}")
            return value
        if self.persisted is None:
            return None

        raw = await self.persisted.get(self._persisted_key(key))
        if raw is None:
            return None
        try:
            value = self._decode(raw)
        except Exception as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None
        logger.debug(f"Cache hit ({self.namespace}, persisted): {key}")
        self.local.set(key, value)
        return value

    async def set(self, key: str, value: T) -> None:
        self.local.set(key, value)
        if self.persisted is not None:
            await self.persisted.set(self._persisted_key(key), self._encode(value), self.persisted_ttl)
