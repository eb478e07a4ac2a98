"""
Response caching with per-category TTL, FIFO capacity and coalesced misses.
"""
from .core import CacheCategory, CacheEntry, CachedResponse, InvalidCategoryError
from .ttl_policies import (
    TTL_CONFIG,
    CachePolicy,
    get_policy_for_category,
)
from .coalescer import FetchCoalescer
from .store import CategoryStore
from .manager import ResponseCache, make_cache_key

__all__ = [
    # Core types
    "CacheCategory",
    "CacheEntry",
    "CachedResponse",
    "InvalidCategoryError",
    # TTL policies
    "TTL_CONFIG",
    "CachePolicy",
    "get_policy_for_category",
    # Internals
    "FetchCoalescer",
    "CategoryStore",
    # Manager
    "ResponseCache",
    "make_cache_key",
]
