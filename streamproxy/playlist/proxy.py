"""
Fetch-then-sanitize glue between the upstream CDN and the playlist routes.
"""
import logging
from typing import Any, Dict, Optional

from streamproxy.api_client import FetchError, HttpClient
from .sanitizer import PlaylistSanitizer

logger = logging.getLogger("playlist.proxy")

HLS_MEDIA_TYPE = "application/vnd.apple.mpegurl"

# Ad insertion upstream is per request, so sanitized output must not be cached
RESPONSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
}


class PlaylistProxy:
    """Fetches playlists from the CDN and runs them through the sanitizer."""

    def __init__(
        self,
        http_client: HttpClient,
        sanitizer: PlaylistSanitizer,
        fetch_timeout: Optional[float] = None,
        check_timeout: Optional[float] = None,
    ):
        self._http = http_client
        self.sanitizer = sanitizer
        self._fetch_timeout = fetch_timeout
        self._check_timeout = check_timeout

    def fetch_sanitized(self, url: str) -> str:
        """
        Fetch `url` and return the sanitized playlist.

        Raises:
            UpstreamFetchError: Fetch failed or timed out
            InvalidPlaylistError: Response is not an M3U8 playlist
        """
        logger.info(f"Fetching playlist: {url}")
        original = self._http.get_text(url, timeout=self._fetch_timeout)
        sanitized = self.sanitizer.sanitize(original, url)
        logger.info(
            f"Sanitized playlist {url} (original={len(original)} chars, sanitized={len(sanitized)} chars)"
        )
        return sanitized

    def check(self, url: str) -> Dict[str, Any]:
        """
        Reachability check. Never raises for upstream failures.
        """
        try:
            result = self._http.head(url, timeout=self._check_timeout)
        except FetchError as e:
            logger.info(f"Playlist check failed for {url}: {e.upstream_message}")
            return {
                "status": True,
                "isValid": False,
                "accessible": False,
                "error": e.upstream_message,
            }

        is_valid = result.status_code == 200
        return {
            "status": True,
            "isValid": is_valid,
            "contentType": result.content_type,
            "accessible": is_valid,
        }
