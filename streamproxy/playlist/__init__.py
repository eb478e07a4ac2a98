"""
HLS playlist sanitizing: ad stripping, URL absolutizing, lazy variant routing.
"""
from .sanitizer import (
    DEFAULT_AD_SEGMENT_PATTERNS,
    InvalidPlaylistError,
    PlaylistSanitizer,
    is_master_playlist,
    resolve_url,
)
from .proxy import HLS_MEDIA_TYPE, RESPONSE_HEADERS, PlaylistProxy

__all__ = [
    "DEFAULT_AD_SEGMENT_PATTERNS",
    "InvalidPlaylistError",
    "PlaylistSanitizer",
    "is_master_playlist",
    "resolve_url",
    "HLS_MEDIA_TYPE",
    "RESPONSE_HEADERS",
    "PlaylistProxy",
]
