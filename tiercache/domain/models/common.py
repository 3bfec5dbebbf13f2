"""Defines common Value Objects used across the cache tiers.

These objects represent simple values or concepts like tier names and the
"not found" marker, ensuring consistency between tiers.
"""

from typing import NewType

# === Caching Context ===
TierName = NewType("TierName", str)     # 'local' or 'remote'
OperationName = NewType("OperationName", str)  # 'read', 'write', 'delete', 'clear'

LOCAL_TIER = TierName("local")
REMOTE_TIER = TierName("remote")


class _Missing:
    """Marker returned by a read when the key is absent.

    ``None`` is a legitimate cached value, so absence needs its own object.
    There is exactly one instance: ``MISSING``.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"

    # Unpickles to the singleton. DiskStore.write refuses to store it.
    def __reduce__(self):
        return "MISSING"


MISSING = _Missing()
