"""tiercache: a bounded in-memory LRU tier in front of a remote tier.

Quick start::

    from tiercache import BoundedCache, InMemoryStore, DiskStore, TieredCache

    cache = TieredCache(InMemoryStore(BoundedCache(1000)), DiskStore("/tmp/tiercache"))
    cache.write("user:1", {"name": "Ada"}).result()
    cache.read("user:1")
"""

from tiercache.core.tiered_cache import MutationHandle, TieredCache
from tiercache.domain.events.cache_events import EntryEvicted, TierOperationFailed
from tiercache.domain.interfaces.cache import LocalStore, RemoteStore, StoreCapability
from tiercache.domain.models.common import MISSING
from tiercache.domain.models.errors import CacheError, PropagationError, RemoteStoreError
from tiercache.infrastructure.cache.bounded_cache import BoundedCache
from tiercache.infrastructure.cache.disk_store import DiskStore
from tiercache.infrastructure.cache.memory_store import InMemoryStore

__version__ = "0.1.0"

__all__ = [
    "BoundedCache",
    "CacheError",
    "DiskStore",
    "EntryEvicted",
    "InMemoryStore",
    "LocalStore",
    "MISSING",
    "MutationHandle",
    "PropagationError",
    "RemoteStore",
    "RemoteStoreError",
    "StoreCapability",
    "TierOperationFailed",
    "TieredCache",
]
