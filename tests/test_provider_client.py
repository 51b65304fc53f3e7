"""
Tests for the provider HTTP client
"""

import httpx
import pytest

from aggregator.core.exceptions import ProviderUnavailable
from aggregator.models.provider import ProviderAction, ProviderQuery
from aggregator.services.provider_client import ProviderClient


def _client(handler) -> ProviderClient:
    return ProviderClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_fetch_parses_envelope(provider_registry):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={
            "code": 1,
            "page": "1",
            "pagecount": "3",
            "total": 60,
            "list": [
                {"vod_id": 7, "vod_name": "狂飙", "type_id": "13", "type_name": "国产剧",
                 "vod_year": "2023", "vod_score": "9.1", "vod_play_url": "第1集$a#第2集$b"},
            ],
        })

    beta = provider_registry.get("beta")
    query = ProviderQuery(action=ProviderAction.DETAIL, page=2, category_id=1, hours=24)
    response = await _client(handler).fetch(beta, query)

    assert response.pagecount == 3
    assert response.total == 60
    item = response.items[0]
    assert item.provider_item_id == "7"
    assert item.category_id == 13
    assert item.year == 2023
    assert item.rating == 9.1

    params = dict(seen["url"].params)
    assert seen["url"].host == "beta.test"
    assert params == {"ac": "detail", "pg": "2", "t": "6", "h": "24"}


@pytest.mark.asyncio
async def test_null_list_is_empty(provider_registry):
    client = _client(lambda request: httpx.Response(200, json={"list": None, "total": 0}))

    response = await client.fetch(provider_registry.get("alpha"), ProviderQuery())

    assert response.items == []


@pytest.mark.asyncio
@pytest.mark.parametrize("handler,reason", [
    (lambda request: httpx.Response(500, text="oops"), "HTTPStatusError"),
    (lambda request: httpx.Response(200, text="<html>blocked</html>"), "invalid JSON"),
    (lambda request: httpx.Response(200, json=["not", "an", "object"]), "unexpected payload shape"),
    (lambda request: httpx.Response(200, json={"list": [{"vod_name": "no id"}]}), "bad payload"),
])
async def test_failures_become_provider_unavailable(provider_registry, handler, reason):
    with pytest.raises(ProviderUnavailable) as exc_info:
        await _client(handler).fetch(provider_registry.get("alpha"), ProviderQuery())

    assert exc_info.value.provider_key == "alpha"
    assert reason in exc_info.value.reason


@pytest.mark.asyncio
async def test_network_error(provider_registry):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailable) as exc_info:
        await _client(handler).fetch(provider_registry.get("alpha"), ProviderQuery())

    assert "ConnectError" in exc_info.value.reason
