"""Domain Events related to cache tiers.

Published to optional listeners when an entry is evicted from a bounded
cache or a background tier operation fails.
"""

from dataclasses import dataclass, field
import time
from typing import Any

from tiercache.domain.models.common import OperationName, TierName


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class EntryEvicted(DomainEvent):
    """Event triggered when the least-recently-used entry is dropped for capacity."""
    key: Any
    max_entries: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class TierOperationFailed(DomainEvent):
    """Event triggered when a dispatched write/delete/clear fails on one tier."""
    tier: TierName
    operation: OperationName
    key: Any
    error: BaseException
    timestamp: float = field(default_factory=time.time)

    @property
    def error_type(self) -> str:
        return type(self.error).__name__
