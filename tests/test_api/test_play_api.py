"""HTTP 端点集成测试（下载与搜索均使用替身）"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tunecache.api.dependencies import get_cache_service, get_search_cache
from tunecache.api.main import app
from tunecache.cache.cache_service import CacheService
from tunecache.cache.coordinator import FetchCoordinator
from tunecache.cache.search_cache import SearchCache
from tunecache.core.exceptions import SearchError
from tests.conftest import FAKE_MP3, VIDEO_ID, StubFetcher


class StubSearch:
    def __init__(self, results=None, error=None):
        self.results = results if results is not None else []
        self.error = error
        self.calls = []

    def __call__(self, query, limit):
        self.calls.append((query, limit))
        if self.error:
            raise self.error
        return self.results


@pytest.fixture
def client():
    """测试客户端（不触发 startup，避免启动真实 GC）"""
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def use_service(store):
    """注入使用指定 Fetcher 的 CacheService"""
    coordinators = []

    def _use(fetcher: StubFetcher) -> CacheService:
        coordinator = FetchCoordinator(store, fetcher)
        coordinators.append(coordinator)
        service = CacheService(store, coordinator)
        app.dependency_overrides[get_cache_service] = lambda: service
        return service

    yield _use
    for coordinator in coordinators:
        coordinator.shutdown(wait=True)


@pytest.fixture
def use_search(tmp_path):
    caches = []

    def _use(primary: StubSearch, fallback: StubSearch) -> SearchCache:
        cache = SearchCache(tmp_path / "search-cache", primary, fallback)
        caches.append(cache)
        app.dependency_overrides[get_search_cache] = lambda: cache
        return cache

    yield _use
    for cache in caches:
        cache.close()


class TestPlayEndpoint:
    """GET /play"""

    def test_downloads_and_returns_audio(self, client, use_service):
        fetcher = StubFetcher()
        use_service(fetcher)

        response = client.get("/play", params={"id": VIDEO_ID})

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.content == FAKE_MP3
        assert fetcher.call_count(VIDEO_ID) == 1

    def test_cached_is_served_without_fetch(self, client, use_service, make_artifact):
        make_artifact(VIDEO_ID, content=b"cached-bytes")
        fetcher = StubFetcher()
        use_service(fetcher)

        response = client.get("/play", params={"id": VIDEO_ID})

        assert response.status_code == 200
        assert response.content == b"cached-bytes"
        assert fetcher.call_count() == 0

    def test_missing_id(self, client, use_service):
        use_service(StubFetcher())
        response = client.get("/play")
        assert response.status_code == 400
        assert response.json() == {"error": "Parameter 'id' is required"}

    @pytest.mark.parametrize("bad_id", ["short", "AbCdEfGhIjK1", "AbCdEfGh.jK"])
    def test_invalid_id(self, client, use_service, bad_id):
        fetcher = StubFetcher()
        use_service(fetcher)

        response = client.get("/play", params={"id": bad_id})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid YouTube ID"}
        assert fetcher.call_count() == 0

    def test_fetch_failure_hides_details(self, client, use_service):
        use_service(StubFetcher(fail=True))

        response = client.get("/play", params={"id": VIDEO_ID})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to download song"}
        assert "simulated" not in response.text

    def test_retry_after_failure_fetches_again(self, client, use_service):
        fetcher = StubFetcher(fail=True)
        use_service(fetcher)

        assert client.get("/play", params={"id": VIDEO_ID}).status_code == 500

        fetcher.fail = False
        response = client.get("/play", params={"id": VIDEO_ID})

        assert response.status_code == 200
        assert fetcher.call_count(VIDEO_ID) == 2

    def test_success_without_file(self, client, use_service):
        use_service(StubFetcher(write=False))

        response = client.get("/play", params={"id": VIDEO_ID})

        assert response.status_code == 500
        assert response.json() == {"error": "File not found after download"}

    def test_request_id_header(self, client, use_service):
        use_service(StubFetcher())

        response = client.get("/play", params={"id": VIDEO_ID}, headers={"x-request-id": "req_test"})
        assert response.headers["x-request-id"] == "req_test"

        response = client.get("/play")
        assert response.headers["x-request-id"].startswith("req_")


class TestPlayStatusEndpoint:
    """GET /play/status"""

    def test_not_cached(self, client, use_service):
        use_service(StubFetcher())

        response = client.get("/play/status", params={"id": VIDEO_ID})

        assert response.status_code == 200
        assert response.json() == {
            "id": VIDEO_ID,
            "cached": False,
            "downloading": False,
            "status": "not_cached",
        }

    def test_ready(self, client, use_service, make_artifact):
        make_artifact(VIDEO_ID)
        use_service(StubFetcher())

        response = client.get("/play/status", params={"id": VIDEO_ID})

        assert response.json()["status"] == "ready"
        assert response.json()["cached"] is True

    @pytest.mark.parametrize("params", [{}, {"id": "bad"}])
    def test_invalid(self, client, use_service, params):
        use_service(StubFetcher())
        response = client.get("/play/status", params=params)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid ID"}


class TestSearchEndpoint:
    """GET /search"""

    RESULTS = [
        {
            "id": "dQw4w9WgXcQ",
            "title": "Never Gonna Give You Up",
            "author": "Rick Astley",
            "duration": 213,
            "thumbnail": "https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg",
        }
    ]

    def test_search(self, client, use_search):
        primary = StubSearch(results=self.RESULTS)
        use_search(primary, StubSearch())

        response = client.get("/search", params={"src": "rick astley", "limit": "3"})

        assert response.status_code == 200
        assert response.json() == self.RESULTS
        assert primary.calls == [("rick astley", 3)]

    @pytest.mark.parametrize(
        "limit,expected",
        [("abc", 5), ("0", 5), ("50", 20), (None, 5), ("3.5", 3), ("10abc", 10), (" 7", 7), ("-2", 5)],
    )
    def test_limit_normalised(self, client, use_search, limit, expected):
        primary = StubSearch()
        use_search(primary, StubSearch())

        params = {"src": "q"}
        if limit is not None:
            params["limit"] = limit
        client.get("/search", params=params)

        assert primary.calls == [("q", expected)]

    def test_ytdlp_flag_forces_fallback(self, client, use_search):
        primary = StubSearch()
        fallback = StubSearch(results=self.RESULTS)
        use_search(primary, fallback)

        response = client.get("/search", params={"src": "rick", "ytdlp": "true"})

        assert response.status_code == 200
        assert primary.calls == []
        assert len(fallback.calls) == 1

    def test_missing_src(self, client, use_search):
        use_search(StubSearch(), StubSearch())
        response = client.get("/search")
        assert response.status_code == 400
        assert response.json() == {"error": "Parameter 'src' is required"}

    def test_search_failure(self, client, use_search):
        use_search(
            StubSearch(error=RuntimeError("bot check")),
            StubSearch(error=SearchError("yt-dlp error (code 1)", detail="ERROR: blocked")),
        )

        response = client.get("/search", params={"src": "rick"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to search songs"}


class TestMiscEndpoints:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_uptime(self, client):
        response = client.get("/uptime")
        assert response.status_code == 200
        uptime = response.json()["uptime"]
        assert uptime.endswith(("s", "m", "h"))
