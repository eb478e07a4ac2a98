"""
Catalog facade over the response cache.

Each method names its cache category explicitly. Genre and country lists
fall back to built-in defaults when the upstream is unavailable; every
other call lets FetchError propagate.
"""
import logging
import threading
from typing import Any, Dict, List, Optional

from streamproxy.api_client import FetchError
from streamproxy.cache import CacheCategory, ResponseCache

logger = logging.getLogger("catalog")


DEFAULT_CATEGORIES: List[Dict[str, str]] = [
    {"id": "hanh-dong", "name": "Hành Động", "_id": "hanh-dong"},
    {"id": "tinh-cam", "name": "Tình Cảm", "_id": "tinh-cam"},
    {"id": "hai-huoc", "name": "Hài Hước", "_id": "hai-huoc"},
    {"id": "co-trang", "name": "Cổ Trang", "_id": "co-trang"},
    {"id": "tam-ly", "name": "Tâm Lý", "_id": "tam-ly"},
    {"id": "hinh-su", "name": "Hình Sự", "_id": "hinh-su"},
    {"id": "chien-tranh", "name": "Chiến Tranh", "_id": "chien-tranh"},
    {"id": "the-thao", "name": "Thể Thao", "_id": "the-thao"},
    {"id": "vo-thuat", "name": "Võ Thuật", "_id": "vo-thuat"},
    {"id": "vien-tuong", "name": "Viễn Tưởng", "_id": "vien-tuong"},
    {"id": "phieu-luu", "name": "Phiêu Lưu", "_id": "phieu-luu"},
    {"id": "khoa-hoc", "name": "Khoa Học", "_id": "khoa-hoc"},
    {"id": "kinh-di", "name": "Kinh Dị", "_id": "kinh-di"},
    {"id": "am-nhac", "name": "Âm Nhạc", "_id": "am-nhac"},
    {"id": "than-thoai", "name": "Thần Thoại", "_id": "than-thoai"},
    {"id": "tai-lieu", "name": "Tài Liệu", "_id": "tai-lieu"},
    {"id": "gia-dinh", "name": "Gia Đình", "_id": "gia-dinh"},
    {"id": "chinh-kich", "name": "Chính Kịch", "_id": "chinh-kich"},
    {"id": "bi-an", "name": "Bí Ẩn", "_id": "bi-an"},
    {"id": "hoat-hinh", "name": "Hoạt Hình", "_id": "hoat-hinh"},
    {"id": "khac", "name": "Khác", "_id": "khac"},
]

DEFAULT_COUNTRIES: List[Dict[str, str]] = [
    {"id": "viet-nam", "name": "Việt Nam", "_id": "viet-nam"},
    {"id": "trung-quoc", "name": "Trung Quốc", "_id": "trung-quoc"},
    {"id": "han-quoc", "name": "Hàn Quốc", "_id": "han-quoc"},
    {"id": "nhat-ban", "name": "Nhật Bản", "_id": "nhat-ban"},
    {"id": "thai-lan", "name": "Thái Lan", "_id": "thai-lan"},
    {"id": "an-do", "name": "Ấn Độ", "_id": "an-do"},
    {"id": "au-my", "name": "Âu Mỹ", "_id": "au-my"},
    {"id": "anh", "name": "Anh", "_id": "anh"},
    {"id": "phap", "name": "Pháp", "_id": "phap"},
    {"id": "khac", "name": "Khác", "_id": "khac"},
]

LATEST_LIST_PATH = "/danh-sach/phim-moi-cap-nhat-v3"

# Pages kept warm by preload and the background refresher
POPULAR_PAGES = [
    (LATEST_LIST_PATH, {"page": 1, "limit": 24}),
    ("/v1/api/the-loai/phim-le", {"page": 1, "limit": 6}),
    ("/v1/api/the-loai/phim-bo", {"page": 1, "limit": 6}),
    ("/v1/api/quoc-gia/han-quoc", {"page": 1, "limit": 6}),
]


class CatalogService:
    """Read-only access to the upstream movie catalog through the cache."""

    def __init__(self, cache: ResponseCache, base_url: str = "https://phimapi.com"):
        self.cache = cache
        self.base_url = base_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def list_categories(self) -> List[Dict[str, Any]]:
        """Genre list, or DEFAULT_CATEGORIES when upstream fails or returns junk."""
        try:
            data = self.cache.get_or_fetch(self._url("/the-loai"), category=CacheCategory.CATEGORY_LIST)
        except FetchError as e:
            logger.warning(f"Genre list unavailable, serving defaults: {e}")
            return DEFAULT_CATEGORIES
        if not isinstance(data, list):
            logger.warning("Genre list has unexpected shape, serving defaults")
            return DEFAULT_CATEGORIES
        return data

    def list_countries(self) -> List[Dict[str, Any]]:
        """Country list, or DEFAULT_COUNTRIES when upstream fails or returns junk."""
        try:
            data = self.cache.get_or_fetch(self._url("/quoc-gia"), category=CacheCategory.COUNTRY_LIST)
        except FetchError as e:
            logger.warning(f"Country list unavailable, serving defaults: {e}")
            return DEFAULT_COUNTRIES
        if not isinstance(data, list):
            logger.warning("Country list has unexpected shape, serving defaults")
            return DEFAULT_COUNTRIES
        return data

    def latest_movies(self, page: int = 1, limit: int = 24, force_refresh: bool = False) -> Any:
        return self.cache.get_or_fetch(
            self._url(LATEST_LIST_PATH),
            {"page": page, "limit": limit},
            category=CacheCategory.MOVIE_LIST,
            force_refresh=force_refresh,
        )

    def movie_detail(self, slug: str) -> Any:
        return self.cache.get_or_fetch(self._url(f"/phim/{slug}"), category=CacheCategory.DETAIL)

    def search(self, keyword: str, page: int = 1, limit: int = 24) -> Any:
        return self.cache.get_or_fetch(
            self._url("/v1/api/tim-kiem"),
            {"keyword": keyword, "page": page, "limit": limit},
            category=CacheCategory.SEARCH_RESULT,
        )

    def movies_by_category(self, slug: str, page: int = 1, limit: int = 24) -> Any:
        return self.cache.get_or_fetch(
            self._url(f"/v1/api/the-loai/{slug}"),
            {"page": page, "limit": limit},
            category=CacheCategory.MOVIE_LIST,
        )

    def movies_by_country(self, slug: str, page: int = 1, limit: int = 24) -> Any:
        return self.cache.get_or_fetch(
            self._url(f"/v1/api/quoc-gia/{slug}"),
            {"page": page, "limit": limit},
            category=CacheCategory.MOVIE_LIST,
        )

    def refresh_popular(self, force_refresh: bool = False) -> int:
        """
        Fetch the popular list pages. Failures are logged, not raised.

        Returns:
            Number of pages fetched successfully
        """
        succeeded = 0
        for path, params in POPULAR_PAGES:
            try:
                self.cache.get_or_fetch(
                    self._url(path),
                    params,
                    category=CacheCategory.MOVIE_LIST,
                    force_refresh=force_refresh,
                )
                succeeded += 1
            except FetchError as e:
                logger.warning(f"Refresh of {path} failed: {e}")
        return succeeded


def preload_essentials(catalog: CatalogService) -> Dict[str, Any]:
    """
    Warm the cache with genre, country and popular list data.

    Never raises for upstream failures.
    """
    logger.info("Preloading essential catalog data...")
    categories = catalog.list_categories()
    countries = catalog.list_countries()
    pages = catalog.refresh_popular()
    summary = {
        "categories": len(categories),
        "countries": len(countries),
        "pages": pages,
        "pages_total": len(POPULAR_PAGES),
    }
    logger.info(f"Preload complete: {summary}")
    return summary


class BackgroundRefresher:
    """
    Re-fetches the popular pages on a fixed interval in a daemon thread.
    """

    def __init__(self, catalog: CatalogService, interval_seconds: float = 300):
        self._catalog = catalog
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running or self._interval <= 0:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="catalog-refresh", daemon=True)
        self._thread.start()
        logger.info(f"Background refresh every {self._interval}s")

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            refreshed = self._catalog.refresh_popular(force_refresh=True)
            logger.info(f"Background refresh: {refreshed}/{len(POPULAR_PAGES)} pages")
