"""Local (in-process) cache tier backed by a ``BoundedCache``."""

import logging
from typing import Any, Optional

from tiercache.domain.interfaces.cache import K, LocalStore, V
from tiercache.domain.models.common import MISSING
from tiercache.infrastructure.cache.bounded_cache import BoundedCache

logger = logging.getLogger(__name__)


class InMemoryStore(LocalStore[K, V]):
    """Adapts a ``BoundedCache`` to the store contract.

    Reads do not refresh recency unless ``promote_on_read`` is set, so
    lookups through the tiered cache leave eviction order to writes.
    """

    def __init__(
        self,
        cache: Optional[BoundedCache[K, V]] = None,
        max_entries: Optional[int] = None,
        promote_on_read: bool = False,
    ):
        if cache is None:
            if max_entries is None:
                raise ValueError("Either cache or max_entries must be given")
            cache = BoundedCache(max_entries)
        self._cache = cache
        self.promote_on_read = promote_on_read
        logger.info(f"InMemoryStore initialized (max_entries={cache.max_entries}, promote_on_read={promote_on_read})")

    @property
    def cache(self) -> BoundedCache[K, V]:
        return self._cache

    def read(self, key: K) -> Any:
        if self.promote_on_read:
            return self._cache.get(key)
        return self._cache.get_or_default(key, MISSING)

    def write(self, key: K, value: V) -> None:
        self._cache.put(key, value)

    def delete(self, key: K) -> None:
        self._cache.delete(key)

    def clear(self) -> None:
        self._cache.clear()
        logger.info("Cleared local (in-memory) tier.")

    def __len__(self) -> int:
        return len(self._cache)
