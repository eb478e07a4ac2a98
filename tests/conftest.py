"""
Shared fakes: no test touches the network or the real clock.
"""
import threading
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from config.settings import Settings
from streamproxy.api_client import HeadResult, UpstreamFetchError
from streamproxy.cache import ResponseCache
from streamproxy.main import create_app


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHttpClient:
    """
    In-memory HttpClient with call recording.

    Unknown JSON URLs answer with a payload echoing the URL, params and
    call number, so every live fetch is distinguishable.
    """

    def __init__(self):
        self.json_responses: Dict[str, Any] = {}
        self.text_responses: Dict[str, str] = {}
        self.head_responses: Dict[str, HeadResult] = {}
        self.failures: Dict[str, Exception] = {}
        self.json_calls: List[Tuple[str, Optional[Dict[str, Any]]]] = []
        self.text_calls: List[str] = []
        self._lock = threading.Lock()

    def get_json(self, url, params=None, timeout=None):
        with self._lock:
            self.json_calls.append((url, params))
            call_number = len(self.json_calls)
        if url in self.failures:
            raise self.failures[url]
        if url in self.json_responses:
            return self.json_responses[url]
        return {"url": url, "params": params, "call": call_number}

    def get_text(self, url, timeout=None):
        self.text_calls.append(url)
        if url in self.failures:
            raise self.failures[url]
        return self.text_responses[url]

    def head(self, url, timeout=None):
        if url in self.failures:
            raise self.failures[url]
        return self.head_responses.get(url, HeadResult(200, "application/vnd.apple.mpegurl"))

    def fail(self, url: str, message: str = "connection refused", status_code: Optional[int] = None):
        self.failures[url] = UpstreamFetchError(
            url, cause=ConnectionError(message), status_code=status_code
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def http():
    return FakeHttpClient()


@pytest.fixture
def cache(http, clock):
    return ResponseCache(http, clock=clock, wall_clock=lambda: 1700000000.0)


@pytest.fixture
def test_settings():
    return Settings(
        cache_sweeper_enabled=False,
        preload_on_startup=False,
        background_refresh_seconds=0,
        catalog_base_url="https://catalog.test",
    )


@pytest.fixture
def client(http, test_settings):
    return TestClient(create_app(test_settings, http_client=http))
