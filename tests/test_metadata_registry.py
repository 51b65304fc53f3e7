"""
Tests for the TMDB client
"""

import httpx
import pytest

from aggregator.config import Settings
from aggregator.core.exceptions import ConfigurationError, QuotaExceededError, RegistryError
from aggregator.services.metadata_registry import TMDB_API_BASE, MetadataRegistry, poster_url
from aggregator.services.quota_manager import REGISTRY_API, QuotaManager

SEARCH_PAYLOAD = {
    "results": [
        {"id": 535167, "media_type": "movie", "title": "流浪地球", "original_title": "流浪地球",
         "release_date": "2019-02-05", "poster_path": "/a.jpg", "vote_average": 6.4},
        {"id": 1, "media_type": "person", "name": "吴京"},
        {"id": 95396, "media_type": "tv", "name": "流浪地球：序章", "first_air_date": ""},
    ]
}

DETAIL_PAYLOAD = {
    "id": 95396,
    "name": "狂飙",
    "original_name": "狂飙",
    "first_air_date": "2023-01-14",
    "genres": [{"id": 80, "name": "犯罪"}, {"id": 18, "name": "剧情"}],
    "networks": [{"name": "CCTV-8"}],
    "production_companies": [{"name": "iQIYI"}],
    "production_countries": [{"iso_3166_1": "CN", "name": "China"}],
    "original_language": "zh",
    "episode_run_time": [45],
    "vote_average": 8.9,
    "credits": {
        "cast": [{"name": "张译"}, {"name": "张颂文"}],
        "crew": [{"name": "徐纪周", "job": "Director"}, {"name": "朱俊懿", "job": "Writer"}],
    },
}


def _registry(handler, quota=None, **settings_overrides):
    settings = Settings(**{"redis_url": "", "tmdb_read_access_token": "token", **settings_overrides})
    http_client = httpx.AsyncClient(base_url=TMDB_API_BASE, transport=httpx.MockTransport(handler))
    return MetadataRegistry(settings=settings, http_client=http_client, quota_manager=quota or QuotaManager())


def test_missing_credentials():
    with pytest.raises(ConfigurationError):
        MetadataRegistry(settings=Settings(tmdb_read_access_token=None, tmdb_api_key=None))


@pytest.mark.asyncio
async def test_search_keeps_movies_and_tv():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=SEARCH_PAYLOAD)

    candidates = await _registry(handler).search("流浪地球")

    assert [(c.id, c.media_type) for c in candidates] == [(535167, "movie"), (95396, "tv")]
    assert candidates[0].year == 2019
    assert candidates[1].title == "流浪地球：序章"
    assert candidates[1].year is None

    request = requests[0]
    assert request.url.path == "/3/search/multi"
    assert request.url.params["query"] == "流浪地球"
    assert request.url.params["include_adult"] == "false"
    assert request.url.params["language"] == "zh-CN"
    assert request.headers["Authorization"] == "Bearer token"


@pytest.mark.asyncio
async def test_api_key_auth():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"results": []})

    await _registry(handler, tmdb_read_access_token=None, tmdb_api_key="v3key").search("x")

    assert requests[0].url.params["api_key"] == "v3key"
    assert "Authorization" not in requests[0].headers


@pytest.mark.asyncio
async def test_detail_normalizes_tv():
    def handler(request):
        assert request.url.path == "/3/tv/95396"
        assert request.url.params["append_to_response"] == "credits"
        return httpx.Response(200, json=DETAIL_PAYLOAD)

    detail = await _registry(handler).detail("tv", 95396)

    assert detail.title == "狂飙"
    assert detail.year == 2023
    assert detail.genre_ids == [80, 18]
    assert detail.cast == ["张译", "张颂文"]
    assert detail.directors == ["徐纪周"]
    assert detail.companies == ["CCTV-8", "iQIYI"]
    assert detail.country_name == "China"
    assert detail.runtime == 45


@pytest.mark.asyncio
async def test_requests_are_metered():
    quota = QuotaManager(limits={REGISTRY_API: 1})
    registry = _registry(lambda request: httpx.Response(200, json={"results": []}), quota=quota)

    await registry.search("a")
    assert await quota.get_usage(REGISTRY_API) == 1

    with pytest.raises(QuotaExceededError):
        await registry.search("b")


@pytest.mark.asyncio
async def test_http_errors_propagate():
    registry = _registry(lambda request: httpx.Response(401, json={"status_message": "Invalid API key"}))

    with pytest.raises(httpx.HTTPStatusError):
        await registry.search("a")


@pytest.mark.asyncio
async def test_non_json_body_is_registry_error():
    registry = _registry(lambda request: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(RegistryError) as exc_info:
        await registry.search("a")
    assert exc_info.value.path == "/search/multi"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"results": [{"id": "abc", "media_type": "movie", "title": "x"}]},
    {"results": ["not-an-object"]},
    ["unexpected", "list"],
])
async def test_malformed_search_payload_is_registry_error(payload):
    registry = _registry(lambda request: httpx.Response(200, json=payload))

    with pytest.raises(RegistryError):
        await registry.search("a")


@pytest.mark.asyncio
async def test_detail_without_id_is_registry_error():
    registry = _registry(lambda request: httpx.Response(200, json={"name": "狂飙"}))

    with pytest.raises(RegistryError):
        await registry.detail("tv", 95396)

def test_poster_url():
    assert poster_url("/a.jpg") == "https://image.tmdb.org/t/p/w500/a.jpg"
    assert poster_url(None) is None
