"""
StreamProxy - Main FastAPI Application
Cached catalog proxy plus ad-stripping HLS playlist endpoint
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, Dict, Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from config.settings import Settings, settings as default_settings
from streamproxy.api_client import FetchError, HttpClient, UpstreamClient
from streamproxy.cache import CacheCategory, InvalidCategoryError, ResponseCache
from streamproxy.catalog import BackgroundRefresher, CatalogService, preload_essentials
from streamproxy.playlist import (
    HLS_MEDIA_TYPE,
    RESPONSE_HEADERS,
    InvalidPlaylistError,
    PlaylistProxy,
    PlaylistSanitizer,
)

# Version tracking
APP_VERSION = "v0.1.0"
APP_NAME = "StreamProxy"

logger = logging.getLogger("main")


class ClearCacheRequest(BaseModel):
    """Body for POST /api/admin/cache/clear."""
    cacheType: Optional[str] = None
    pattern: Optional[str] = None


class RefreshCacheRequest(BaseModel):
    """Body for POST /api/admin/cache/refresh."""
    url: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
    cacheType: Optional[str] = None


def _now_iso() -> str:
    return datetime.utcnow().isoformat() + "Z"


def _error(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    content: Dict[str, Any] = {"status": False, "message": message}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


# Dependencies: components live on app.state, created once in create_app

def get_response_cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_playlist_proxy(request: Request) -> PlaylistProxy:
    return request.app.state.playlist_proxy


def create_app(
    config: Optional[Settings] = None,
    http_client: Optional[HttpClient] = None,
) -> FastAPI:
    """
    Build the application and its components.

    Args:
        config: Settings override (defaults to environment-loaded settings)
        http_client: Upstream client override, used by tests
    """
    config = config or default_settings
    logging.basicConfig(level=config.log_level.upper())

    http = http_client or UpstreamClient(config)
    cache = ResponseCache(http, coalesce_timeout=config.coalesce_timeout_seconds)
    catalog = CatalogService(cache, base_url=config.catalog_base_url)
    sanitizer = PlaylistSanitizer(
        ad_patterns=config.ad_segment_patterns,
        sanitize_path=config.sanitize_path,
    )
    playlist_proxy = PlaylistProxy(
        http,
        sanitizer,
        fetch_timeout=config.playlist_timeout_seconds,
        check_timeout=config.check_timeout_seconds,
    )
    refresher = BackgroundRefresher(catalog, interval_seconds=config.background_refresh_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.cache_sweeper_enabled:
            cache.start_sweeper()
        if config.preload_on_startup:
            preload_essentials(catalog)
        refresher.start()
        yield
        refresher.stop()
        cache.stop_sweeper()

    app = FastAPI(
        title=APP_NAME,
        description="Cached movie catalog proxy and HLS playlist sanitizer",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.response_cache = cache
    app.state.catalog = catalog
    app.state.playlist_proxy = playlist_proxy
    app.state.refresher = refresher

    _register_health_routes(app)
    _register_playlist_routes(app, config.sanitize_path)
    _register_cache_routes(app)
    _register_catalog_routes(app)
    return app


def _register_health_routes(app: FastAPI) -> None:
    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/version")
    def version_info():
        """Version information endpoint."""
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "full": f"{APP_NAME} {APP_VERSION}",
        }


def _register_playlist_routes(app: FastAPI, sanitize_path: str) -> None:
    @app.get(sanitize_path)
    def sanitize_playlist(
        url: Optional[str] = Query(None, description="Absolute URL of the upstream playlist"),
        proxy: PlaylistProxy = Depends(get_playlist_proxy),
    ):
        """
        Fetch an M3U8 playlist and return it without ad segments.

        Master playlists come back with each variant routed through this endpoint.
        """
        if not url:
            return _error(400, "url is required")

        try:
            body = proxy.fetch_sanitized(url)
        except InvalidPlaylistError as e:
            return _error(400, "URL did not return a valid M3U8 playlist", str(e))
        except FetchError as e:
            logger.error(f"Playlist fetch failed for {url}: {e}")
            return _error(502, "Could not fetch playlist", e.upstream_message)

        return Response(content=body, media_type=HLS_MEDIA_TYPE, headers=RESPONSE_HEADERS)

    @app.get("/playlist/check")
    def check_playlist(
        url: Optional[str] = Query(None, description="URL to check"),
        proxy: PlaylistProxy = Depends(get_playlist_proxy),
    ):
        """Check that a playlist URL is reachable. Upstream errors are reported, not raised."""
        if not url:
            return _error(400, "url is required")
        return proxy.check(url)


def _register_cache_routes(app: FastAPI) -> None:
    @app.get("/api/admin/cache/stats")
    def cache_stats(cache: ResponseCache = Depends(get_response_cache)):
        """Per-category cache statistics."""
        return {
            "status": True,
            "data": cache.stats(),
            "coalescer": cache.coalescer_stats(),
            "timestamp": _now_iso(),
        }

    @app.post("/api/admin/cache/clear")
    def clear_cache(
        request: ClearCacheRequest,
        cache: ResponseCache = Depends(get_response_cache),
    ):
        """Clear all entries, one category, and/or keys containing a pattern."""
        try:
            cleared = cache.clear(category=request.cacheType, key_substring=request.pattern)
        except InvalidCategoryError as e:
            return _error(400, str(e))

        return {
            "status": True,
            "message": f"Cleared {cleared} cache entries",
            "clearedCount": cleared,
            "cacheType": request.cacheType or "all",
            "pattern": request.pattern or "all",
        }

    @app.post("/api/admin/cache/preload")
    def preload_cache(catalog: CatalogService = Depends(get_catalog)):
        """Warm the cache with genre, country and popular list data."""
        summary = preload_essentials(catalog)
        return {"status": True, "message": "Cache preload complete", "data": summary}

    @app.post("/api/admin/cache/refresh")
    def refresh_cache(
        request: RefreshCacheRequest,
        cache: ResponseCache = Depends(get_response_cache),
    ):
        """Force a live fetch for one URL and overwrite its entry."""
        if not request.url:
            return _error(400, "url is required")

        try:
            data = cache.get_or_fetch(
                request.url,
                request.params,
                category=request.cacheType or CacheCategory.MOVIE_LIST,
                force_refresh=True,
            )
        except InvalidCategoryError as e:
            return _error(400, str(e))
        except FetchError as e:
            return _error(502, f"Failed to refresh cache for {request.url}", e.upstream_message)

        data_length = len(data) if isinstance(data, (list, dict)) else 0
        return {
            "status": True,
            "message": f"Cache refreshed for {request.url}",
            "dataLength": data_length,
        }

    @app.get("/api/cache/health")
    def cache_health(cache: ResponseCache = Depends(get_response_cache)):
        """Cache liveness summary."""
        stats = cache.stats()
        return {
            "status": True,
            "healthy": True,
            "totalCacheKeys": sum(s["entry_count"] for s in stats.values()),
            "cacheTypes": list(stats.keys()),
            "timestamp": _now_iso(),
        }

    @app.get("/api/cache/performance")
    def cache_performance(cache: ResponseCache = Depends(get_response_cache)):
        """Hit/miss rates per category."""
        performance = []
        for cache_type, s in cache.stats().items():
            lookups = s["hit_count"] + s["miss_count"]
            performance.append({
                "cacheType": cache_type,
                "keyCount": s["entry_count"],
                "hitRate": round(s["hit_count"] / lookups * 100, 1) if lookups else 0,
                "hits": s["hit_count"],
                "misses": s["miss_count"],
            })
        return {"status": True, "data": performance, "timestamp": _now_iso()}


def _register_catalog_routes(app: FastAPI) -> None:
    @app.get("/api/categories")
    def list_categories(catalog: CatalogService = Depends(get_catalog)):
        """Genre list (defaults if upstream is down)."""
        return catalog.list_categories()

    @app.get("/api/countries")
    def list_countries(catalog: CatalogService = Depends(get_catalog)):
        """Country list (defaults if upstream is down)."""
        return catalog.list_countries()

    @app.get("/api/category/{slug}")
    def movies_by_category(
        slug: str,
        page: int = Query(1, ge=1),
        limit: int = Query(24, ge=1, le=64),
        catalog: CatalogService = Depends(get_catalog),
    ):
        """Movies in one genre."""
        try:
            return catalog.movies_by_category(slug, page=page, limit=limit)
        except FetchError as e:
            return _error(502, f"Failed to fetch movies for genre {slug}", e.upstream_message)

    @app.get("/api/country/{slug}")
    def movies_by_country(
        slug: str,
        page: int = Query(1, ge=1),
        limit: int = Query(24, ge=1, le=64),
        catalog: CatalogService = Depends(get_catalog),
    ):
        """Movies from one country."""
        try:
            return catalog.movies_by_country(slug, page=page, limit=limit)
        except FetchError as e:
            return _error(502, f"Failed to fetch movies for country {slug}", e.upstream_message)

    @app.get("/api/movies")
    def latest_movies(
        page: int = Query(1, ge=1),
        limit: int = Query(24, ge=1, le=64),
        catalog: CatalogService = Depends(get_catalog),
    ):
        """Latest updated movies."""
        try:
            return catalog.latest_movies(page=page, limit=limit)
        except FetchError as e:
            return _error(502, "Failed to fetch movie list", e.upstream_message)

    @app.get("/api/movies/{slug}")
    def movie_detail(slug: str, catalog: CatalogService = Depends(get_catalog)):
        """Movie detail by slug."""
        try:
            return catalog.movie_detail(slug)
        except FetchError as e:
            status = 404 if e.status_code == 404 else 502
            return _error(status, f"Failed to fetch movie {slug}", e.upstream_message)

    @app.get("/api/search")
    def search_movies(
        keyword: str = Query(..., min_length=1),
        page: int = Query(1, ge=1),
        limit: int = Query(24, ge=1, le=64),
        catalog: CatalogService = Depends(get_catalog),
    ):
        """Keyword search."""
        try:
            return catalog.search(keyword, page=page, limit=limit)
        except FetchError as e:
            return _error(502, "Search failed", e.upstream_message)


app = create_app()
