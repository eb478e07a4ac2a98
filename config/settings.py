"""Configuration management using pydantic-settings."""
from typing import List

from pydantic_settings import BaseSettings


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream catalog API
    catalog_base_url: str = "https://phimapi.com"
    catalog_timeout_seconds: float = 5.0

    # Upstream CDN (playlists)
    playlist_timeout_seconds: float = 10.0
    check_timeout_seconds: float = 5.0
    upstream_user_agent: str = DEFAULT_USER_AGENT
    upstream_referer: str = "https://phimapi.com/"

    # Playlist sanitizer
    sanitize_path: str = "/playlist/sanitize"
    # Observed in the wild; not an upstream contract
    ad_segment_patterns: List[str] = ["/v7/", "segment_", "convertv7/"]

    # Cache
    cache_sweeper_enabled: bool = True
    coalesce_timeout_seconds: float = 30.0

    # Warmup
    preload_on_startup: bool = False
    background_refresh_seconds: int = 300  # 0 disables

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
