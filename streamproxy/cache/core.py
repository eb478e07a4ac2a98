"""
Core cache data structures.
"""
from dataclasses import dataclass
from typing import Any, Union
from enum import Enum


class InvalidCategoryError(ValueError):
    """Raised when an unknown cache category tag is supplied."""

    def __init__(self, category: Any):
        self.category = category
        valid = ", ".join(c.value for c in CacheCategory)
        super().__init__(f"Unknown cache category {category!r} (expected one of: {valid})")


class CacheCategory(Enum):
    """Categories of catalog data with different caching behaviors."""
    MOVIE_LIST = "movie-list"          # 10 minutes
    CATEGORY_LIST = "category-list"    # 2 hours
    COUNTRY_LIST = "country-list"      # 2 hours
    SEARCH_RESULT = "search-result"    # 5 minutes
    DETAIL = "detail"                  # 15 minutes

    @classmethod
    def parse(cls, value: Union["CacheCategory", str]) -> "CacheCategory":
        """Accept an enum member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidCategoryError(value) from None


@dataclass
class CachedResponse:
    """
    Payload stored for one upstream GET.
    """
    data: Any
    url: str
    timestamp: float  # wall clock, seconds since epoch


@dataclass
class CacheEntry:
    """
    A cached response with the bookkeeping needed for expiry.

    `stored_at` comes from the cache's monotonic clock, not wall time.
    """
    key: str
    value: CachedResponse
    category: CacheCategory
    stored_at: float
    ttl_seconds: int

    def age_seconds(self, now: float) -> float:
        return now - self.stored_at

    def is_expired(self, now: float) -> bool:
        return self.age_seconds(now) >= self.ttl_seconds
