"""
Per-key fetch serialization for cache misses.

Concurrent misses on the same (category, key) run one upstream fetch;
the other callers block until it finishes and receive the same result
or the same error.
"""
import threading
import time
import logging
from typing import Dict, Optional, Callable, Any, Hashable
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightFetch:
    """Tracks an in-progress upstream fetch."""
    done: threading.Event = field(default_factory=threading.Event)
    result: Optional[Any] = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.monotonic)
    waiters: int = 0


class FetchCoalescer:
    """
    Lets the first caller for a key perform the fetch while later callers wait.

    Usage:
        coalescer = FetchCoalescer()
        payload = coalescer.run(
            (CacheCategory.DETAIL, cache_key),
            lambda: fetch_and_store(),
        )
    """

    def __init__(self, timeout: float = 30.0):
        """
        Args:
            timeout: Max seconds a waiter blocks on another caller's fetch
        """
        self._in_flight: Dict[Hashable, InFlightFetch] = {}
        self._lock = threading.Lock()
        self._timeout = timeout
        self._coalesced = 0

    def run(self, key: Hashable, fetch_fn: Callable[[], Any]) -> Any:
        """
        Join an in-flight fetch for `key` or start one.

        Raises:
            TimeoutError: If waiting on another caller's fetch takes too long
            Exception: Whatever fetch_fn raised, for initiator and waiters alike
        """
        with self._lock:
            in_flight = self._in_flight.get(key)
            if in_flight is not None:
                in_flight.waiters += 1
                self._coalesced += 1
                is_initiator = False
                logger.debug(f"Joining in-flight fetch for {key} (waiters: {in_flight.waiters})")
            else:
                in_flight = InFlightFetch()
                self._in_flight[key] = in_flight
                is_initiator = True

        if is_initiator:
            try:
                in_flight.result = fetch_fn()
            except BaseException as e:
                in_flight.error = e
                raise
            finally:
                with self._lock:
                    self._in_flight.pop(key, None)
                in_flight.done.set()
            return in_flight.result

        if not in_flight.done.wait(timeout=self._timeout):
            logger.error(f"Timeout waiting for in-flight fetch: {key}")
            raise TimeoutError(f"Fetch for {key} did not finish within {self._timeout}s")

        if in_flight.error is not None:
            raise in_flight.error
        return in_flight.result

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "active_fetches": len(self._in_flight),
                "coalesced_total": self._coalesced,
            }
