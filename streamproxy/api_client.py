"""
HTTP client for the upstream catalog API and video CDN.
All outbound traffic goes through here; failures surface as FetchError.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, Protocol

import requests

from config.settings import Settings, settings as default_settings

logger = logging.getLogger("api_client")


class FetchError(Exception):
    """An outbound HTTP call failed (network, timeout, non-2xx, bad body)."""

    def __init__(
        self,
        url: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
        message: Optional[str] = None,
    ):
        self.url = url
        self.cause = cause
        self.status_code = status_code
        detail = message or (str(cause) if cause else "request failed")
        super().__init__(f"GET {url} failed: {detail}")

    @property
    def upstream_message(self) -> str:
        """The upstream error text without the URL prefix."""
        if self.cause is not None:
            return str(self.cause)
        return str(self)


class UpstreamFetchError(FetchError):
    """FetchError raised by the concrete requests-based client."""


@dataclass
class HeadResult:
    status_code: int
    content_type: str


class HttpClient(Protocol):
    """
    What the cache and playlist routes need from an HTTP client.

    Implementations:
    - UpstreamClient: requests.Session against the real upstreams
    - test fakes with call counters
    """

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        ...

    def get_text(self, url: str, timeout: Optional[float] = None) -> str:
        ...

    def head(self, url: str, timeout: Optional[float] = None) -> HeadResult:
        ...


class UpstreamClient:
    """
    requests-based HttpClient.

    Sends browser-like headers since the CDN rejects bare clients.
    """

    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self._settings = config or default_settings
        self._session = session or requests.Session()
        self._session.headers.update(self._get_headers())

    def _get_headers(self) -> dict:
        return {
            "User-Agent": self._settings.upstream_user_agent,
            "Referer": self._settings.upstream_referer,
            "Accept": "*/*",
        }

    def _get(self, url: str, params: Optional[Dict[str, Any]], timeout: float) -> requests.Response:
        try:
            response = self._session.get(url, params=params, timeout=timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.warning(f"Upstream returned {status} for {url}")
            raise UpstreamFetchError(url, cause=e, status_code=status) from e
        except requests.RequestException as e:
            logger.warning(f"Upstream request failed for {url}: {e}")
            raise UpstreamFetchError(url, cause=e) from e
        return response

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """GET a JSON document."""
        response = self._get(url, params, timeout or self._settings.catalog_timeout_seconds)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamFetchError(
                url, cause=e, status_code=response.status_code, message="response is not JSON"
            ) from e

    def get_text(self, url: str, timeout: Optional[float] = None) -> str:
        """GET a text body (playlists)."""
        response = self._get(url, None, timeout or self._settings.playlist_timeout_seconds)
        return response.text

    def head(self, url: str, timeout: Optional[float] = None) -> HeadResult:
        """HEAD request used for reachability checks."""
        try:
            response = self._session.head(
                url,
                timeout=timeout or self._settings.check_timeout_seconds,
                allow_redirects=True,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            raise UpstreamFetchError(url, cause=e, status_code=status) from e
        return HeadResult(
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
        )

    def close(self) -> None:
        self._session.close()
