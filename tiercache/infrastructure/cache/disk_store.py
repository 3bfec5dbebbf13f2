"""Remote cache tier backed by ``diskcache``.

Stores entries in a SQLite-indexed directory shared by every process that
opens it, with an optional time-to-live per entry. Failures surface as
``RemoteStoreError`` rather than as misses.
"""

import logging
import pickle
import sqlite3
from pathlib import Path
from typing import Any, Optional, Union

import diskcache as dc

from tiercache.domain.interfaces.cache import K, RemoteStore, V
from tiercache.domain.models.common import MISSING, OperationName
from tiercache.domain.models.errors import RemoteStoreError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 1.0

# Non-primitive keys are pickled on every operation, values on the way out.
_READ_ERRORS = (
    dc.Timeout, OSError, sqlite3.Error,
    pickle.PicklingError, pickle.UnpicklingError, EOFError,
    TypeError, AttributeError, ImportError,
)
_WRITE_ERRORS = (dc.Timeout, OSError, sqlite3.Error, pickle.PicklingError, TypeError, AttributeError)

# get() default, so a stored None reads back as None.
_ABSENT = object()


class DiskStore(RemoteStore[K, V]):
    """Disk-backed tier; thread-safe and shareable between processes."""

    def __init__(
        self,
        directory: Union[str, Path],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        ttl_seconds: Optional[float] = None,
    ):
        """Opens (or creates) the disk cache.

        Args:
            directory: Directory holding the cache database and files.
            timeout: Seconds to wait on the SQLite lock before failing.
            ttl_seconds: Expiry applied to every write, or None to keep
                entries until deleted.
        """
        self.ttl_seconds = ttl_seconds
        try:
            self._cache = dc.Cache(str(directory), timeout=timeout)
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Failed to open disk tier at {directory}: {e}", exc_info=True)
            raise RemoteStoreError(OperationName("open"), original_exception=e) from e
        logger.info(f"DiskStore initialized at: {self._cache.directory} (timeout={timeout}s, ttl={ttl_seconds})")

    @property
    def directory(self) -> str:
        return self._cache.directory

    def _fail(self, operation: str, key: Any, error: BaseException) -> RemoteStoreError:
        logger.warning(f"Disk tier {operation} failed (key: {key!r}): {error}")
        return RemoteStoreError(OperationName(operation), key=key, original_exception=error)

    def read(self, key: K) -> Any:
        try:
            value = self._cache.get(key, default=_ABSENT)
        except _READ_ERRORS as e:
            raise self._fail("read", key, e) from e
        if value is _ABSENT:
            logger.debug(f"Disk tier MISS for key: {key!r}")
            return MISSING
        logger.debug(f"Disk tier HIT for key: {key!r}")
        return value

    def write(self, key: K, value: V) -> None:
        """Stores ``value`` under ``key`` with the configured TTL.

        Raises:
            ValueError: ``value`` is the ``MISSING`` sentinel, which would
                read back as a miss.
            RemoteStoreError: The disk cache could not store the entry.
        """
        if value is MISSING:
            raise ValueError("MISSING marks an absent entry and cannot be stored")
        try:
            self._cache.set(key, value, expire=self.ttl_seconds)
        except _WRITE_ERRORS as e:
            raise self._fail("write", key, e) from e
        logger.debug(f"Disk tier PUT key: {key!r}")

    def delete(self, key: K) -> None:
        try:
            removed = self._cache.delete(key)
        except _READ_ERRORS as e:
            raise self._fail("delete", key, e) from e
        if removed:
            logger.debug(f"Disk tier DELETE key: {key!r}")

    def clear(self) -> None:
        try:
            count = self._cache.clear()
        except _READ_ERRORS as e:
            raise self._fail("clear", None, e) from e
        logger.info(f"Cleared disk tier at {self.directory}. Removed {count} items.")

    def volume(self) -> int:
        """Estimated size of the cache directory in bytes."""
        return self._cache.volume()

    def close(self) -> None:
        self._cache.close()

    def __len__(self) -> int:
        return len(self._cache)
