"""
Snapshot cache: the whole release set under one fixed key.
"""

from typing import Optional

from shared.logging import get_logger
from ..domain.models import ReleaseSnapshot, SnapshotCorruptError
from .kv_store import KeyValueStore

DEFAULT_RELEASE_CACHE_KEY = "gh-fossbilling-releases"
DEFAULT_RELEASE_CACHE_TTL = 86400


class ReleaseCache:
    """Reads and atomically replaces the serialized release snapshot."""

    def __init__(
        self,
        store: KeyValueStore,
        cache_key: str = DEFAULT_RELEASE_CACHE_KEY,
        ttl_seconds: int = DEFAULT_RELEASE_CACHE_TTL,
    ):
        self.store = store
        self.cache_key = cache_key
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("versions.release_cache")

    async def read_raw(self) -> Optional[str]:
        return await self.store.get(self.cache_key)

    async def write(self, snapshot: ReleaseSnapshot) -> None:
        await self.store.put(self.cache_key, snapshot.serialize(), ttl_seconds=self.ttl_seconds)
        self.logger.info("Updated releases cache", release_count=len(snapshot))

    async def clear(self) -> None:
        await self.store.delete(self.cache_key)

    def decode(self, raw: str, reason: str) -> Optional[ReleaseSnapshot]:
        """Deserialize a cached entry, logging and returning None when corrupt."""
        try:
            return ReleaseSnapshot.deserialize(raw)
        except SnapshotCorruptError as exc:
            self.logger.error(reason, error=str(exc))
            return None
