"""External cache stores for aggregated results.

Values are JSON text keyed by string with a per-entry TTL.  The store is a
pure optimisation: backend failures raise ``CacheStoreUnavailable`` and the
aggregator computes directly instead.

``create_cache_store`` picks the backend from a URL:

- ``redis://`` / ``rediss://`` / ``unix://`` — Redis via ``redis.asyncio``
- ``fakeredis://`` — in-process fakeredis, for tests
- ``memory://`` — per-worker dict with expiry
- empty — caching disabled
"""

import logging
import time

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from mediagate.errors import CacheStoreUnavailable

logger = logging.getLogger("cache")


class NullCacheStore:
    backend = "disabled"

    async def get(self, key: str) -> str | None:
        return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        return None

    async def ping(self) -> bool:
        return False

    async def close(self) -> None:
        return None


class MemoryCacheStore:
    """Dict-backed store; entries expire lazily on read."""

    backend = "memory"

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, value)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()


class RedisCacheStore:
    backend = "redis"

    def __init__(self, client: aioredis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 2.0) -> "RedisCacheStore":
        return cls(
            aioredis.from_url(
                url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        )

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as exc:
            raise CacheStoreUnavailable(f"GET {key} failed") from exc

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as exc:
            raise CacheStoreUnavailable(f"SET {key} failed") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        await self._client.aclose()


def create_cache_store(url: str, socket_timeout: float = 2.0):
    """Instantiate the cache backend named by ``url``."""
    if not url:
        return NullCacheStore()
    if url.startswith("memory://"):
        return MemoryCacheStore()
    if url.startswith("fakeredis://"):
        import fakeredis.aioredis

        return RedisCacheStore(fakeredis.aioredis.FakeRedis(decode_responses=True))
    return RedisCacheStore.from_url(url, socket_timeout=socket_timeout)
