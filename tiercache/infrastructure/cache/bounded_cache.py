"""Thread-safe, capacity-bounded LRU cache.

Keeps at most ``max_entries`` keys. Writes and promoting reads move a key
to the most-recently-used end; when the count goes over the limit the
least-recently-used key is evicted.
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from tiercache.domain.events.cache_events import EntryEvicted
from tiercache.domain.models.common import MISSING

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

EvictionListener = Callable[[EntryEvicted], None]


class BoundedCache(Generic[K, V]):
    """LRU cache with a hard cap on the number of entries.

    The mapping and the recency sequence are updated together under one
    lock, so every operation sees them holding the same key set. The
    recency sequence is an ``OrderedDict`` (linked list plus key index):
    head is the next eviction victim, tail is the most recently used key.
    """

    def __init__(self, max_entries: int, on_evict: Optional[EvictionListener] = None):
        """Initializes the cache.

        Args:
            max_entries: Maximum number of distinct keys held at once.
            on_evict: Optional listener called with an ``EntryEvicted``
                event for each capacity eviction.
        """
        if isinstance(max_entries, bool) or not isinstance(max_entries, int) or max_entries < 1:
            raise ValueError(f"max_entries must be a positive integer, got {max_entries!r}")
        self._max_entries = max_entries
        self._entries: Dict[K, V] = {}
        self._recency: "OrderedDict[K, None]" = OrderedDict()
        self._lock = threading.Lock()
        self._on_evict = on_evict
        logger.debug(f"BoundedCache initialized with max_entries={max_entries}")

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def _touch(self, key: K) -> None:
        """Marks ``key`` as most recently used. Caller holds the lock."""
        if key in self._recency:
            self._recency.move_to_end(key)
        else:
            self._recency[key] = None

    def _evict_overflow(self) -> List[K]:
        """Drops LRU keys until within capacity. Caller holds the lock."""
        evicted = []
        while len(self._recency) > self._max_entries:
            lru_key, _ = self._recency.popitem(last=False)
            self._entries.pop(lru_key, None)
            evicted.append(lru_key)
            logger.debug(f"BoundedCache EVICTED key (LRU): {lru_key!r}")
        return evicted

    def _notify_evicted(self, keys: List[K]) -> None:
        if self._on_evict is None:
            return
        for key in keys:
            try:
                self._on_evict(EntryEvicted(key=key, max_entries=self._max_entries))
            except Exception as e:
                logger.error(f"Eviction listener failed for key {key!r}: {e}", exc_info=True)

    def put(self, key: K, value: V) -> None:
        """Inserts or overwrites ``key`` and marks it most recently used."""
        with self._lock:
            self._entries[key] = value
            self._touch(key)
            evicted = self._evict_overflow()
        # Listeners run outside the lock.
        self._notify_evicted(evicted)

    def get(self, key: K) -> Any:
        """Returns the value for ``key`` and promotes it, or ``MISSING``."""
        with self._lock:
            if key not in self._entries:
                return MISSING
            self._touch(key)
            return self._entries[key]

    def get_or_default(self, key: K, default: Any = None) -> Any:
        """Returns the value for ``key`` or ``default``. Never changes recency."""
        with self._lock:
            return self._entries.get(key, default)

    def delete(self, key: K) -> None:
        """Removes ``key`` if present."""
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                self._recency.pop(key, None)

    def clear(self) -> None:
        """Removes every entry."""
        with self._lock:
            self._entries.clear()
            self._recency.clear()

    def keys(self) -> List[K]:
        """Snapshot of held keys, least recently used first."""
        with self._lock:
            return list(self._recency)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(max_entries={self._max_entries}, size={len(self)})"
