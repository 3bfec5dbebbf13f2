"""Error types raised by cache tiers and the tiered orchestrator."""

from typing import Any, Dict, Optional

from tiercache.domain.models.common import OperationName, TierName


class CacheError(Exception):
    """Base class for all cache errors."""


class RemoteStoreError(CacheError):
    """A remote tier could not complete an operation.

    Raised for timeouts, I/O and serialization failures. Distinct from a
    miss, which is reported as ``MISSING``.
    """

    def __init__(
        self,
        operation: OperationName,
        key: Any = None,
        original_exception: Optional[BaseException] = None,
        message: Optional[str] = None,
    ):
        self.operation = operation
        self.key = key
        self.original_exception = original_exception
        if message is None:
            message = f"Remote store failed to {operation}"
            if key is not None:
                message += f" key {key!r}"
            if original_exception is not None:
                message += f": {original_exception}"
        super().__init__(message)


class PropagationError(CacheError):
    """One or more tiers failed to apply a fanned-out mutation."""

    def __init__(self, operation: OperationName, key: Any, failures: Dict[TierName, BaseException]):
        self.operation = operation
        self.key = key
        self.failures = dict(failures)
        details = ", ".join(f"{tier}: {err}" for tier, err in self.failures.items())
        target = f" key {key!r}" if key is not None else ""
        super().__init__(f"Failed to {operation}{target} on {len(self.failures)} tier(s) ({details})")
