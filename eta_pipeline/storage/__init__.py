"""
Storage layer for the ETA data pipeline.

This module provides the process-wide TTL cache of last-known-good source
data. Estimates themselves are not persisted here.

Main exports:
- CacheStore: Thread-safe TTL-keyed store
- CacheEntry: One cached payload with its timestamp and ttl
- cache_key: Key format for (source type, driver, load)
"""
from .cache_store import CacheEntry, CacheStore, cache_key

__all__ = [
    "CacheEntry",
    "CacheStore",
    "cache_key",
]
