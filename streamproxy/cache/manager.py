"""
Response cache in front of outbound catalog GETs, one TTL store per category.
"""
import base64
import re
import threading
import time
import logging
from typing import Dict, Optional, Callable, Any, Mapping, Union

from streamproxy.api_client import FetchError, HttpClient
from .core import CacheCategory, CachedResponse
from .coalescer import FetchCoalescer
from .store import CategoryStore
from .ttl_policies import CachePolicy, get_policy_for_category

logger = logging.getLogger("cache.manager")

_NON_WORD = re.compile(r"[^\w]")
_SCHEME = re.compile(r"^https?://")


def make_cache_key(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Build a cache key from URL and query params.

    Params are sorted by name so their order never changes the key.
    None-valued params are ignored.
    """
    base_key = _NON_WORD.sub("_", _SCHEME.sub("", url))
    items = sorted((k, v) for k, v in (params or {}).items() if v is not None)
    if not items:
        return base_key

    query = "&".join(f"{k}={v}" for k, v in items)
    encoded = base64.b64encode(query.encode("utf-8")).decode("ascii")
    return f"{base_key}_{_NON_WORD.sub('_', encoded)}"


CategoryArg = Union[CacheCategory, str]


class ResponseCache:
    """
    Cache of upstream JSON responses with:
    - Per-category TTL and capacity (see ttl_policies)
    - Lazy expiry on read plus an optional background sweeper
    - Per-key serialization of concurrent misses
    - Hit/miss counters per category
    """

    def __init__(
        self,
        http_client: HttpClient,
        policies: Optional[Mapping[CacheCategory, CachePolicy]] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        coalesce_timeout: float = 30.0,
    ):
        """
        Args:
            http_client: Client used for live fetches
            policies: Per-category overrides of the default TTL policies
            clock: Monotonic clock driving expiry
            wall_clock: Clock for the capture timestamp stored with each payload
            coalesce_timeout: Max seconds to wait on another caller's fetch
        """
        self._http = http_client
        self._wall_clock = wall_clock
        self._coalescer = FetchCoalescer(timeout=coalesce_timeout)
        self._stores: Dict[CacheCategory, CategoryStore] = {
            category: CategoryStore(category, get_policy_for_category(category, policies), clock)
            for category in CacheCategory
        }

        self._sweeper: Optional[threading.Thread] = None
        self._sweeper_stop = threading.Event()

    def _store_for(self, category: CategoryArg) -> CategoryStore:
        return self._stores[CacheCategory.parse(category)]

    def get_or_fetch(
        self,
        url: str,
        query_params: Optional[Mapping[str, Any]] = None,
        category: CategoryArg = CacheCategory.MOVIE_LIST,
        force_refresh: bool = False,
    ) -> Any:
        """
        Return the cached payload for (category, url + params) or fetch it.

        Args:
            url: Upstream URL
            query_params: Query parameters; order is irrelevant
            category: Selects TTL and capacity
            force_refresh: Skip the cache lookup and overwrite the entry

        Returns:
            The upstream JSON payload

        Raises:
            InvalidCategoryError: Unknown category tag
            FetchError: The live fetch failed or a shared fetch timed out; nothing was written
        """
        store = self._store_for(category)
        params = dict(query_params or {})
        cache_key = make_cache_key(url, params)

        if force_refresh:
            logger.info(f"FORCE REFRESH [{store.category.value}]: {cache_key}")
            store.count_miss()
        else:
            cached = store.lookup(cache_key)
            if cached is not None:
                logger.debug(f"CACHE HIT [{store.category.value}]: {cache_key}")
                return cached.data
            logger.info(f"CACHE MISS [{store.category.value}]: {cache_key}")

        def fetch_and_store() -> Any:
            # A concurrent caller may have stored while we waited for the slot
            if not force_refresh:
                cached = store.peek(cache_key)
                if cached is not None:
                    return cached.data
            data = self._fetch(url, params)
            store.put(cache_key, CachedResponse(data=data, url=url, timestamp=self._wall_clock()))
            return data

        try:
            return self._coalescer.run((store.category, cache_key), fetch_and_store)
        except TimeoutError as e:
            raise FetchError(url, cause=e) from e

    def _fetch(self, url: str, params: Dict[str, Any]) -> Any:
        try:
            return self._http.get_json(url, params=params or None)
        except FetchError:
            raise
        except Exception as e:
            logger.warning(f"Fetch failed for {url}: {e}")
            raise FetchError(url, cause=e) from e

    def get_entry(
        self,
        url: str,
        query_params: Optional[Mapping[str, Any]] = None,
        category: CategoryArg = CacheCategory.MOVIE_LIST,
    ) -> Optional[CachedResponse]:
        """Peek at a live entry without fetching or counting a hit/miss."""
        return self._store_for(category).peek(make_cache_key(url, query_params))

    def clear(
        self,
        category: Optional[CategoryArg] = None,
        key_substring: Optional[str] = None,
    ) -> int:
        """
        Remove entries from one category or all of them.

        Args:
            category: Restrict to this category (all categories if None)
            key_substring: Only remove keys containing this substring

        Returns:
            Number of entries removed

        Raises:
            InvalidCategoryError: Unknown category tag
        """
        if category is not None:
            stores = [self._store_for(category)]
        else:
            stores = list(self._stores.values())

        removed = sum(store.remove_matching(key_substring) for store in stores)
        scope = stores[0].category.value if category is not None else "all"
        logger.info(
            f"Cleared {removed} cache entries (category={scope}, pattern={key_substring or '*'})"
        )
        return removed

    def stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-category entry counts, sample keys and hit/miss counters."""
        return {
            category.value: store.get_stats()
            for category, store in self._stores.items()
        }

    def coalescer_stats(self) -> Dict[str, Any]:
        return self._coalescer.get_stats()

    def sweep(self, only_due: bool = False) -> int:
        """
        Remove expired entries.

        Args:
            only_due: Only sweep categories whose check period has elapsed

        Returns:
            Number of entries removed
        """
        removed = 0
        for store in self._stores.values():
            if only_due and not store.sweep_due():
                continue
            removed += store.sweep()
        return removed

    def start_sweeper(self) -> None:
        """Start the background expiry thread (no-op if already running)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._sweeper_stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="cache-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info("Cache sweeper started")

    def stop_sweeper(self, timeout: float = 5.0) -> None:
        if self._sweeper is None:
            return
        self._sweeper_stop.set()
        self._sweeper.join(timeout=timeout)
        self._sweeper = None
        logger.info("Cache sweeper stopped")

    def _sweep_loop(self) -> None:
        interval = min(store.policy.check_period_seconds for store in self._stores.values())
        while not self._sweeper_stop.wait(interval):
            try:
                removed = self.sweep(only_due=True)
                if removed:
                    logger.info(f"Sweeper removed {removed} expired entries")
            except Exception as e:
                logger.warning(f"Cache sweep failed: {e}")
