"""
Cache admin endpoints and catalog routes that sit on top of the cache.
"""
from streamproxy.catalog import DEFAULT_CATEGORIES, DEFAULT_COUNTRIES, POPULAR_PAGES


BASE = "https://catalog.test"


def test_categories_served_from_upstream_then_cache(client, http):
    http.json_responses[f"{BASE}/the-loai"] = [{"id": "hanh-dong", "name": "Hành Động"}]

    first = client.get("/api/categories").json()
    second = client.get("/api/categories").json()

    assert first == second == [{"id": "hanh-dong", "name": "Hành Động"}]
    assert len(http.json_calls) == 1


def test_categories_fall_back_to_defaults(client, http):
    http.fail(f"{BASE}/the-loai")
    assert client.get("/api/categories").json() == DEFAULT_CATEGORIES


def test_countries_fall_back_on_unexpected_shape(client, http):
    http.json_responses[f"{BASE}/quoc-gia"] = {"error": "maintenance"}
    assert client.get("/api/countries").json() == DEFAULT_COUNTRIES


def test_movie_list_uses_page_and_limit(client, http):
    data = client.get("/api/movies", params={"page": 2, "limit": 12}).json()
    assert data["url"] == f"{BASE}/danh-sach/phim-moi-cap-nhat-v3"
    assert data["params"] == {"page": 2, "limit": 12}


def test_movies_by_category_cached_as_movie_list(client, http):
    data = client.get("/api/category/hanh-dong", params={"page": 2}).json()
    client.get("/api/category/hanh-dong", params={"page": 2})

    assert data["url"] == f"{BASE}/v1/api/the-loai/hanh-dong"
    assert data["params"] == {"page": 2, "limit": 24}
    assert len(http.json_calls) == 1
    stats = client.get("/api/admin/cache/stats").json()["data"]
    assert stats["movie-list"]["entry_count"] == 1
    assert stats["movie-list"]["hit_count"] == 1
    assert "v1_api_the_loai_hanh_dong" in stats["movie-list"]["sample_keys"][0]


def test_movies_by_country_cached_as_movie_list(client, http):
    data = client.get("/api/country/han-quoc", params={"limit": 6}).json()

    assert data["url"] == f"{BASE}/v1/api/quoc-gia/han-quoc"
    assert data["params"] == {"page": 1, "limit": 6}
    stats = client.get("/api/admin/cache/stats").json()["data"]
    assert stats["movie-list"]["entry_count"] == 1
    assert stats["category-list"]["entry_count"] == 0


def test_movies_by_country_failure_is_502(client, http):
    http.fail(f"{BASE}/v1/api/quoc-gia/han-quoc")
    response = client.get("/api/country/han-quoc")
    assert response.status_code == 502
    assert response.json()["status"] is False


def test_movie_detail_404_passthrough(client, http):
    http.fail(f"{BASE}/phim/unknown", "404 Client Error", status_code=404)
    response = client.get("/api/movies/unknown")
    assert response.status_code == 404
    assert response.json()["status"] is False


def test_search_failure_is_502(client, http):
    http.fail(f"{BASE}/v1/api/tim-kiem")
    response = client.get("/api/search", params={"keyword": "batman"})
    assert response.status_code == 502


def test_stats_lists_every_category(client, http):
    client.get("/api/movies")
    client.get("/api/movies")

    body = client.get("/api/admin/cache/stats").json()

    assert body["status"] is True
    assert set(body["data"]) == {"movie-list", "category-list", "country-list", "search-result", "detail"}
    assert body["data"]["movie-list"]["entry_count"] == 1
    assert body["data"]["movie-list"]["hit_count"] == 1
    assert body["data"]["movie-list"]["miss_count"] == 1


def test_clear_everything(client, http):
    client.get("/api/movies")
    client.get("/api/movies/some-slug")

    body = client.post("/api/admin/cache/clear", json={}).json()

    assert body["clearedCount"] == 2
    assert body["cacheType"] == "all"
    assert body["pattern"] == "all"


def test_clear_by_type_and_pattern(client, http):
    client.get("/api/movies/first-slug")
    client.get("/api/movies/second-slug")

    body = client.post(
        "/api/admin/cache/clear",
        json={"cacheType": "detail", "pattern": "first_slug"},
    ).json()

    assert body["clearedCount"] == 1
    stats = client.get("/api/admin/cache/stats").json()["data"]
    assert stats["detail"]["entry_count"] == 1


def test_clear_rejects_unknown_type(client):
    response = client.post("/api/admin/cache/clear", json={"cacheType": "trailers"})
    assert response.status_code == 400


def test_refresh_forces_live_fetch(client, http):
    client.get("/api/movies")
    response = client.post(
        "/api/admin/cache/refresh",
        json={
            "url": f"{BASE}/danh-sach/phim-moi-cap-nhat-v3",
            "params": {"limit": 24, "page": 1},
            "cacheType": "movie-list",
        },
    )

    assert response.status_code == 200
    assert len(http.json_calls) == 2
    # The refreshed entry is what the list route now serves
    assert client.get("/api/movies").json()["call"] == 2


def test_refresh_requires_url(client):
    assert client.post("/api/admin/cache/refresh", json={}).status_code == 400


def test_refresh_upstream_failure(client, http):
    http.fail(f"{BASE}/broken")
    response = client.post("/api/admin/cache/refresh", json={"url": f"{BASE}/broken"})
    assert response.status_code == 502
    assert response.json()["error"] == "connection refused"


def test_preload_warms_cache(client, http):
    body = client.post("/api/admin/cache/preload").json()

    assert body["status"] is True
    assert body["data"]["pages"] == len(POPULAR_PAGES)
    health = client.get("/api/cache/health").json()
    assert health["healthy"] is True
    assert health["totalCacheKeys"] == 2 + len(POPULAR_PAGES)


def test_preload_survives_upstream_outage(client, http):
    http.fail(f"{BASE}/the-loai")
    http.fail(f"{BASE}/quoc-gia")
    body = client.post("/api/admin/cache/preload").json()
    assert body["status"] is True
    assert body["data"]["categories"] == len(DEFAULT_CATEGORIES)


def test_performance_hit_rate(client, http):
    client.get("/api/categories")
    client.get("/api/categories")
    client.get("/api/categories")
    client.get("/api/categories")

    rows = {row["cacheType"]: row for row in client.get("/api/cache/performance").json()["data"]}

    assert rows["category-list"]["hits"] == 3
    assert rows["category-list"]["misses"] == 1
    assert rows["category-list"]["hitRate"] == 75.0
    assert rows["detail"]["hitRate"] == 0
