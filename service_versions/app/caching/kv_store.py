"""
Key/value storage backends for the Versions service.
"""

import time
from typing import Dict, Optional, Tuple

import redis.asyncio as redis

from shared.logging import get_logger


class KeyValueStore:
    """String key/value store with optional per-entry TTL."""

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store.

    Backend failures are logged and degrade to a miss on read and a no-op on
    write, so an unavailable cache never fails a request by itself.
    """

    def __init__(self, redis_url: str, namespace: str = "versions"):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("versions.kv_store")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            redis_client = await self._get_redis()
            cached_data = await redis_client.get(self._make_key(key))
        except Exception as e:
            self.logger.error("Cache get error", entry=key, error=str(e))
            return None

        if cached_data is None:
            return None
        return cached_data.decode('utf-8') if isinstance(cached_data, bytes) else cached_data

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        try:
            redis_client = await self._get_redis()
            await redis_client.set(self._make_key(key), value, ex=ttl_seconds)
            self.logger.debug("Cached value", entry=key, ttl=ttl_seconds)
        except Exception as e:
            self.logger.error("Cache set error", entry=key, error=str(e))

    async def delete(self, key: str) -> None:
        try:
            redis_client = await self._get_redis()
            await redis_client.delete(self._make_key(key))
        except Exception as e:
            self.logger.error("Cache delete error", entry=key, error=str(e))

    async def ping(self) -> bool:
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except Exception as e:
            self.logger.warning("Cache ping failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store for single-instance deployments and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, Tuple[str, Optional[float]]] = {
            key: (value, None) for key, value in (initial or {}).items()
        }

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
        self._entries[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)


def create_store(backend: str, redis_url: str, namespace: str = "versions") -> KeyValueStore:
    """Build the configured storage backend."""
    if backend == "memory":
        return MemoryKeyValueStore()
    if backend == "redis":
        return RedisKeyValueStore(redis_url, namespace=namespace)
    raise ValueError(f"Unknown cache backend: {backend}")
