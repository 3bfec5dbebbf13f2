"""Interface for cache tiers.

Defines the contract for reading, writing, deleting and clearing cached
data. The local bounded tier, the remote tier and the tiered orchestrator
all implement it, so any of them can stand in for a single-tier cache.
"""

import abc
from typing import Any, Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class StoreCapability(abc.ABC, Generic[K, V]):
    """Abstract Base Class for a key/value cache tier.

    Implementations must be safe to call from several threads at once.
    """

    @abc.abstractmethod
    def read(self, key: K) -> Any:
        """Retrieves the value stored under ``key``.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached value (which may be ``None``), or ``MISSING`` if the
            key is absent.

        Raises:
            RemoteStoreError: If a remote tier could not be queried. A
                failure is never reported as ``MISSING``.
        """
        pass

    @abc.abstractmethod
    def write(self, key: K, value: V) -> Any:
        """Stores ``value`` under ``key``, overwriting any previous value.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
        """
        pass

    @abc.abstractmethod
    def delete(self, key: K) -> Any:
        """Removes ``key``. A no-op if the key is absent.

        Args:
            key: The cache key to delete.
        """
        pass

    @abc.abstractmethod
    def clear(self) -> Any:
        """Removes all entries from the tier."""
        pass


class LocalStore(StoreCapability[K, V]):
    """A fast, in-process, capacity-bounded tier."""


class RemoteStore(StoreCapability[K, V]):
    """A slower, out-of-process tier that may fail with ``RemoteStoreError``."""
