from services.planner.cache.fingerprint import fingerprint, normalize_destination
from services.planner.cache.store import CacheHit, cache_stats, evict_all, lookup, store

__all__ = [
    "CacheHit",
    "cache_stats",
    "evict_all",
    "fingerprint",
    "lookup",
    "normalize_destination",
    "store",
]
