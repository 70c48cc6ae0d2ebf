"""
Versions caching package.

Provides the key/value backends and the snapshot cache used by the
freshness orchestrator. The snapshot is always replaced as a whole; never
write per-version entries.
"""

from .kv_store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore, create_store
from .release_cache import ReleaseCache

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
    "ReleaseCache",
    "create_store",
]
