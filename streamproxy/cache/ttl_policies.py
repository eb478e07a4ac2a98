"""
TTL and capacity configuration per cache category.
"""
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Union

from .core import CacheCategory


@dataclass(frozen=True)
class CachePolicy:
    """Expiry and capacity settings for one category store."""
    ttl_seconds: int
    max_entries: int
    check_period_seconds: int


# Catalog/genre/country lists change rarely; listings and searches change often.
TTL_CONFIG: Dict[CacheCategory, CachePolicy] = {
    CacheCategory.MOVIE_LIST: CachePolicy(
        ttl_seconds=600,            # 10 minutes
        max_entries=1000,
        check_period_seconds=60,
    ),
    CacheCategory.CATEGORY_LIST: CachePolicy(
        ttl_seconds=7200,           # 2 hours
        max_entries=100,
        check_period_seconds=300,
    ),
    CacheCategory.COUNTRY_LIST: CachePolicy(
        ttl_seconds=7200,           # 2 hours
        max_entries=100,
        check_period_seconds=300,
    ),
    CacheCategory.SEARCH_RESULT: CachePolicy(
        ttl_seconds=300,            # 5 minutes
        max_entries=500,
        check_period_seconds=60,
    ),
    CacheCategory.DETAIL: CachePolicy(
        ttl_seconds=900,            # 15 minutes
        max_entries=1000,
        check_period_seconds=120,
    ),
}


def get_policy_for_category(
    category: Union[CacheCategory, str],
    overrides: Optional[Mapping[CacheCategory, CachePolicy]] = None,
) -> CachePolicy:
    """
    Get the cache policy for a category.

    Args:
        category: Category enum member or its string value
        overrides: Optional per-category replacements for TTL_CONFIG

    Returns:
        CachePolicy for the category

    Raises:
        InvalidCategoryError: If the category tag is unknown
    """
    category = CacheCategory.parse(category)
    if overrides and category in overrides:
        return overrides[category]
    return TTL_CONFIG[category]
