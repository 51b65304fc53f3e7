import pytest
from unittest.mock import AsyncMock, patch

from aggregator.services.cache_service import CacheService


@pytest.fixture
def memory_cache():
    with patch("aggregator.services.cache_service.get_redis_client", return_value=None):
        yield CacheService()


@pytest.mark.asyncio
async def test_cache_service_async_calls():
    """Test that CacheService awaits Redis calls."""

    # Mock redis client
    mock_redis = AsyncMock()
    mock_redis.get.return_value = '{"total": 1}'
    mock_redis.setex.return_value = True

    # Patch get_redis_client to return our mock
    with patch("aggregator.services.cache_service.get_redis_client", return_value=mock_redis):
        service = CacheService()

        # Test get
        result = await service.get("catalog:list:1:1")
        assert result == '{"total": 1}'
        mock_redis.get.assert_awaited_with("catalog:list:1:1")

        # Test set
        await service.set("catalog:list:1:1", "value", 100)
        mock_redis.setex.assert_awaited_with("catalog:list:1:1", 100, "value")

        assert await service.get_json("catalog:list:1:1") == {"total": 1}


@pytest.mark.asyncio
async def test_redis_errors_fall_back_to_memory():
    mock_redis = AsyncMock()
    mock_redis.setex.side_effect = ConnectionError("redis down")
    mock_redis.get.side_effect = ConnectionError("redis down")

    service = CacheService(redis_client=mock_redis)
    await service.set("key", "value", 60)

    assert await service.get("key") == "value"


@pytest.mark.asyncio
async def test_failed_ping_drops_redis():
    mock_redis = AsyncMock()
    mock_redis.ping.side_effect = ConnectionError("redis down")

    service = CacheService(redis_client=mock_redis)

    assert await service.ping() is False
    assert service.redis is None


@pytest.mark.asyncio
async def test_memory_json_round_trip(memory_cache):
    await memory_cache.set_json("catalog:search:流浪", {"list": [{"vod_name": "流浪地球"}]})

    assert await memory_cache.get_json("catalog:search:流浪") == {"list": [{"vod_name": "流浪地球"}]}
    assert await memory_cache.get_json("catalog:search:other") is None


@pytest.mark.asyncio
async def test_memory_entries_expire(memory_cache):
    with patch("aggregator.services.cache_service.time.monotonic", return_value=1000.0):
        await memory_cache.set("key", "value", ttl_seconds=10)

    with patch("aggregator.services.cache_service.time.monotonic", return_value=1009.0):
        assert await memory_cache.get("key") == "value"

    with patch("aggregator.services.cache_service.time.monotonic", return_value=1010.0):
        assert await memory_cache.get("key") is None


@pytest.mark.asyncio
async def test_memory_delete(memory_cache):
    await memory_cache.set("key", "value")
    await memory_cache.delete("key")

    assert await memory_cache.get("key") is None
    assert await memory_cache.ping() is False
