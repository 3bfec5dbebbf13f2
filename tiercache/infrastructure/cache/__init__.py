"""Cache tier implementations.

Provides concrete implementations of the store interface: a bounded
in-memory LRU tier and a disk-backed tier on diskcache.
Bounded Context: Cache Management
"""
