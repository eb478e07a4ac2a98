"""
M3U8 playlist sanitizer.

Strips injected advertising from HLS media playlists and makes every
reference absolute. Master playlists are not fetched further; their
variant URIs are pointed back at the sanitize endpoint so each variant
is cleaned only when a player actually requests it.
"""
import logging
from typing import Iterable, List, Optional
from urllib.parse import quote, urljoin

logger = logging.getLogger("playlist.sanitizer")

HEADER_TAG = "#EXTM3U"
STREAM_INF_TAG = "#EXT-X-STREAM-INF"
SEGMENT_INFO_TAG = "#EXTINF"
DISCONTINUITY_TAG = "#EXT-X-DISCONTINUITY"
AD_KEY_MARKER = "#EXT-X-KEY:METHOD=NONE"

DEFAULT_AD_SEGMENT_PATTERNS = ("/v7/", "segment_", "convertv7/")
DEFAULT_SANITIZE_PATH = "/playlist/sanitize"

# Same unreserved set as JavaScript's encodeURIComponent
_COMPONENT_SAFE = "!*'()"


class InvalidPlaylistError(ValueError):
    """Content does not look like an M3U8 playlist."""


def is_absolute_url(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


def resolve_url(base_url: str, url: str) -> str:
    """Resolve `url` against the playlist's own URL; absolute URLs pass through."""
    if is_absolute_url(url):
        return url
    return urljoin(base_url, url)


def is_master_playlist(content: str) -> bool:
    return STREAM_INF_TAG in content


def _is_uri(line: str) -> bool:
    return bool(line) and not line.startswith("#")


def _is_discontinuity(line: str) -> bool:
    # Exact match, so #EXT-X-DISCONTINUITY-SEQUENCE is an ordinary directive
    return line == DISCONTINUITY_TAG


def _ends_with_discontinuity(lines: List[str]) -> bool:
    for line in reversed(lines):
        if line:
            return _is_discontinuity(line)
    return False


class PlaylistSanitizer:
    """
    Stateless M3U8 transformer; one instance is safe to share across threads.

    Usage:
        sanitizer = PlaylistSanitizer(ad_patterns=settings.ad_segment_patterns)
        clean = sanitizer.sanitize(raw_text, "https://cdn.example.com/a/index.m3u8")
    """

    def __init__(
        self,
        ad_patterns: Optional[Iterable[str]] = None,
        sanitize_path: str = DEFAULT_SANITIZE_PATH,
    ):
        """
        Args:
            ad_patterns: Substrings marking a segment URI as an ad
            sanitize_path: Entry point that master-playlist variants are routed through
        """
        self.ad_patterns = tuple(ad_patterns if ad_patterns is not None else DEFAULT_AD_SEGMENT_PATTERNS)
        self.sanitize_path = sanitize_path

    def sanitize(self, raw_text: str, source_url: str) -> str:
        """
        Sanitize a playlist fetched from `source_url`.

        Raises:
            InvalidPlaylistError: If the text does not start with #EXTM3U
        """
        raw_text = raw_text.lstrip("\ufeff").lstrip()
        if not raw_text.startswith(HEADER_TAG):
            raise InvalidPlaylistError(f"Content from {source_url} is not an M3U8 playlist")

        lines = [line.strip() for line in raw_text.split("\n")]
        if is_master_playlist(raw_text):
            logger.debug(f"Master playlist: {source_url}")
            output = self._rewrite_master(lines, source_url)
        else:
            logger.debug(f"Media playlist: {source_url}")
            output = self._strip_ads(lines, source_url)

        return "\n".join(output)

    def is_ad_segment(self, uri: str) -> bool:
        return any(pattern in uri for pattern in self.ad_patterns)

    def variant_url(self, absolute_url: str) -> str:
        """Entry-point URL that sanitizes `absolute_url` on request."""
        return f"{self.sanitize_path}?url={quote(absolute_url, safe=_COMPONENT_SAFE)}"

    def _rewrite_master(self, lines: List[str], source_url: str) -> List[str]:
        output: List[str] = []
        i = 0
        while i < len(lines):
            line = lines[i]
            output.append(line)

            if line.startswith(STREAM_INF_TAG) and i + 1 < len(lines) and _is_uri(lines[i + 1]):
                variant = resolve_url(source_url, lines[i + 1])
                output.append(self.variant_url(variant))
                i += 1
            i += 1
        return output

    def _strip_ads(self, lines: List[str], source_url: str) -> List[str]:
        output: List[str] = []
        in_ad_block = False
        last_was_discontinuity = False
        dropped = 0

        for line in lines:
            if not line:
                output.append(line)
                continue

            if AD_KEY_MARKER in line:
                in_ad_block = True
                continue

            if in_ad_block:
                if _is_discontinuity(line):
                    in_ad_block = False
                    last_was_discontinuity = True
                elif _is_uri(line):
                    dropped += 1
                continue

            if _is_uri(line):
                if self.is_ad_segment(line):
                    if output and output[-1].startswith(SEGMENT_INFO_TAG):
                        output.pop()
                        last_was_discontinuity = _ends_with_discontinuity(output)
                    dropped += 1
                    continue
                output.append(resolve_url(source_url, line))
                last_was_discontinuity = False
                continue

            if _is_discontinuity(line):
                if last_was_discontinuity:
                    continue
                last_was_discontinuity = True
            else:
                last_was_discontinuity = False

            output.append(line)

        if in_ad_block:
            logger.warning(f"Ad block in {source_url} never closed; playlist truncated at block start")
        if dropped:
            logger.info(f"Removed {dropped} ad segments from {source_url}")
        return output
