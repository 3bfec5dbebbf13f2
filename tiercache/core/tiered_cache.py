"""Two-tier cache orchestration.

Presents one logical cache over a fast, bounded local tier and a slower
remote tier. Reads go local first and fall back to the remote tier.
Writes, deletes and clears are fanned out to both tiers on a thread pool
and return immediately with a ``MutationHandle``; callers that need the
outcome wait on the handle, everyone else gets fire-and-forget.
"""

import logging
import threading
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor, wait as wait_futures
from typing import Any, Callable, Dict, Optional

from tiercache.domain.events.cache_events import TierOperationFailed
from tiercache.domain.interfaces.cache import K, StoreCapability, V
from tiercache.domain.models.common import LOCAL_TIER, MISSING, REMOTE_TIER, OperationName, TierName
from tiercache.domain.models.errors import CacheError, PropagationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4

FailureListener = Callable[[TierOperationFailed], None]


class MutationHandle:
    """Completion handle for one fanned-out write, delete or clear."""

    def __init__(self, operation: OperationName, key: Any, futures: Dict[TierName, Future]):
        self.operation = operation
        self.key = key
        self.futures = futures

    def done(self) -> bool:
        """True once every tier has finished, successfully or not."""
        return all(f.done() for f in self.futures.values())

    def wait(self, timeout: Optional[float] = None) -> Dict[TierName, BaseException]:
        """Blocks until every tier finishes (or ``timeout`` elapses).

        Returns:
            Mapping of tier name to the exception it raised. Tiers still
            running after the timeout are left out.
        """
        wait_futures(list(self.futures.values()), timeout=timeout)
        return self.exceptions()

    def exceptions(self) -> Dict[TierName, BaseException]:
        """Failures of the tiers that have already finished.

        A cancelled tier never applied the mutation and counts as failed.
        """
        failures = {}
        for tier, future in self.futures.items():
            if future.cancelled():
                failures[tier] = CancelledError(f"{self.operation} was cancelled before it ran")
            elif future.done():
                error = future.exception()
                if error is not None:
                    failures[tier] = error
        return failures

    def result(self, timeout: Optional[float] = None) -> None:
        """Blocks until both tiers finish; raises if any of them failed.

        Raises:
            PropagationError: One or more tiers raised or were cancelled.
            TimeoutError: Not every tier finished within ``timeout``.
        """
        failures = self.wait(timeout)
        if not self.done():
            raise TimeoutError(f"{self.operation} did not complete on every tier within {timeout}s")
        if failures:
            raise PropagationError(self.operation, self.key, failures)

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"MutationHandle(operation={self.operation!r}, key={self.key!r}, {state})"


class TieredCache(StoreCapability[K, V]):
    """Read-through cache over a local and a remote tier.

    The tiers are fixed at construction. ``read`` blocks on whichever tiers
    it consults. Mutations run on the executor with no ordering between the
    two tiers, nor between successive calls for the same key; callers that
    need per-key ordering must wait on the returned handle.

    Background failures are never raised to the caller that issued the
    mutation. They are logged, passed to ``on_failure`` and recorded on the
    ``MutationHandle``.
    """

    def __init__(
        self,
        local: StoreCapability[K, V],
        remote: StoreCapability[K, V],
        executor: Optional[Executor] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        write_back: bool = False,
        on_failure: Optional[FailureListener] = None,
    ):
        """Initializes the tiered cache.

        Args:
            local: The fast, bounded tier consulted first on reads.
            remote: The fallback tier.
            executor: Executor for mutation tasks. When given, the caller
                owns it and ``close`` leaves it running.
            max_workers: Pool size when no executor is given.
            write_back: Copy a remote hit into the local tier on read.
            on_failure: Listener for failed background tier operations.
        """
        if executor is None:
            if max_workers < 1:
                raise ValueError(f"max_workers must be at least 1, got {max_workers}")
            executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tiercache")
            self._owns_executor = True
        else:
            self._owns_executor = False
        self._local = local
        self._remote = remote
        self._executor = executor
        self.write_back = write_back
        self._on_failure = on_failure
        self._closed = False
        self._close_lock = threading.Lock()
        logger.info(
            f"TieredCache initialized. local={type(local).__name__}, remote={type(remote).__name__}, "
            f"write_back={write_back}"
        )

    @property
    def local(self) -> StoreCapability[K, V]:
        return self._local

    @property
    def remote(self) -> StoreCapability[K, V]:
        return self._remote

    def read(self, key: K) -> Any:
        """Returns the local value if present, else whatever the remote reports.

        Raises:
            RemoteStoreError: The local tier missed and the remote failed.
        """
        self._ensure_open()
        value = self._local.read(key)
        if value is not MISSING:
            logger.debug(f"Local tier hit for key: {key!r}")
            return value

        value = self._remote.read(key)
        if value is MISSING:
            logger.debug(f"Cache miss for key: {key!r} on both tiers")
            return MISSING

        logger.debug(f"Remote tier hit for key: {key!r}")
        if self.write_back:
            self._local.write(key, value)
            logger.debug(f"Wrote back remote hit into local tier: {key!r}")
        return value

    def write(self, key: K, value: V) -> MutationHandle:
        """Dispatches the write to both tiers and returns without waiting."""
        return self._fan_out(OperationName("write"), key, lambda tier: tier.write(key, value))

    def delete(self, key: K) -> MutationHandle:
        """Dispatches the delete to both tiers and returns without waiting."""
        return self._fan_out(OperationName("delete"), key, lambda tier: tier.delete(key))

    def clear(self) -> MutationHandle:
        """Dispatches a clear to both tiers and returns without waiting."""
        return self._fan_out(OperationName("clear"), None, lambda tier: tier.clear())

    def _fan_out(
        self,
        operation: OperationName,
        key: Any,
        apply: Callable[[StoreCapability[K, V]], Any],
    ) -> MutationHandle:
        futures: Dict[TierName, Future] = {}
        with self._close_lock:
            self._ensure_open()
            for tier_name, tier in ((REMOTE_TIER, self._remote), (LOCAL_TIER, self._local)):
                try:
                    future = self._executor.submit(apply, tier)
                except RuntimeError as e:
                    self._abandon(operation, key, futures)
                    raise CacheError(f"Could not dispatch {operation} to the {tier_name} tier: {e}") from e
                future.add_done_callback(self._make_reporter(tier_name, operation, key))
                futures[tier_name] = future
        logger.debug(f"Dispatched {operation} for key: {key!r} to both tiers")
        return MutationHandle(operation, key, futures)

    def _abandon(self, operation: OperationName, key: Any, futures: Dict[TierName, Future]) -> None:
        for tier_name, future in futures.items():
            if not future.cancel():
                logger.error(
                    f"{operation} already running on {tier_name} tier after dispatch failed; "
                    f"tiers may disagree (key: {key!r})"
                )

    def _make_reporter(self, tier: TierName, operation: OperationName, key: Any) -> Callable[[Future], None]:
        def report(future: Future) -> None:
            if future.cancelled():
                logger.warning(f"{operation} on {tier} tier cancelled (key: {key!r})")
                return
            error = future.exception()
            if error is None:
                return
            logger.error(
                f"Background {operation} failed on {tier} tier (key: {key!r}): {error}",
                exc_info=(type(error), error, error.__traceback__),
            )
            if self._on_failure is not None:
                try:
                    self._on_failure(TierOperationFailed(tier=tier, operation=operation, key=key, error=error))
                except Exception as e:
                    logger.error(f"Failure listener raised: {e}", exc_info=True)
        return report

    def _ensure_open(self) -> None:
        if self._closed:
            raise CacheError("TieredCache is closed")

    def close(self, wait: bool = True) -> None:
        """Stops accepting operations and shuts down an owned executor."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
        logger.info("TieredCache closed.")

    def __enter__(self) -> "TieredCache[K, V]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
