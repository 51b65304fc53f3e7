"""
Pytest Fixtures

Shared fakes and fixtures for testing.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from aggregator.config import Settings
from aggregator.models.catalog import CanonicalEntry, Category, ClassifiedItem, SourceRecord
from aggregator.models.provider import ProviderItem
from aggregator.services.catalog_store import InMemoryCatalogStore
from aggregator.services.merge_engine import MergeEngine
from aggregator.services.provider_registry import MAP_OFFSET, MAP_STANDARD, ProviderRegistry


class FakeClock:
    """Manually advanced clock for the health registry."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        debug=False,
        redis_url="",
        tmdb_read_access_token="test-token",
        provider_timeout_seconds=0.5,
        broadcast_timeout_seconds=0.5,
        enrichment_batch_pause_seconds=0,
        enrichment_batch_size=10,
        enrichment_concurrency=3,
        sync_providers=["alpha", "beta"],
        backfill_providers=["beta"],
        sync_max_pages=3,
        admin_api_key="secret",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider_registry() -> ProviderRegistry:
    return ProviderRegistry.from_dicts([
        {"key": "alpha", "name": "Alpha", "endpoint": "https://alpha.test/api.php/provide/vod/",
         "category_map": MAP_STANDARD, "home_map": {"movie_hot": 1, "anime": 4}},
        {"key": "beta", "name": "Beta", "endpoint": "https://beta.test/api.php/provide/vod/",
         "category_map": MAP_OFFSET, "home_map": {"movie_hot": 6, "anime": 29}},
        {"key": "gamma", "name": "Gamma", "endpoint": "https://gamma.test/api.php/provide/vod/",
         "category_map": MAP_STANDARD, "home_map": {"movie_hot": 5}},
    ])


@pytest.fixture
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


@pytest.fixture
def merge_engine(store, test_settings) -> MergeEngine:
    return MergeEngine(store, settings=test_settings)


def make_provider_item(**overrides) -> ProviderItem:
    """Raw upstream item, using the wire (vod_*) field names."""
    data = {
        "vod_id": 101,
        "vod_name": "流浪地球",
        "type_id": 5,
        "type_name": "科幻片",
        "vod_play_url": "正片$https://cdn.test/1.m3u8",
        "vod_play_from": "m3u8",
        "vod_remarks": "HD",
        "vod_area": "大陆",
        "vod_year": "2019",
        "vod_score": "7.9",
    }
    data.update(overrides)
    return ProviderItem.model_validate(data)


def make_classified(
    title: str = "流浪地球",
    category: Category = Category.MOVIE,
    year: Optional[int] = 2019,
    **overrides,
) -> ClassifiedItem:
    data = {
        "title": title,
        "category": category,
        "tags": {"scifi"},
        "year": year,
        "rating": 7.9,
        "playback": "正片$https://cdn.test/1.m3u8",
        "play_from": "m3u8",
        "remarks": "HD",
    }
    data.update(overrides)
    return ClassifiedItem(**data)


def make_entry(
    title: str = "流浪地球",
    provider_key: str = "alpha",
    provider_item_id: str = "1",
    created_offset: int = 0,
    **overrides,
) -> CanonicalEntry:
    """Canonical entry with one source, created `created_offset` seconds after a fixed base."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    data = {
        "title": title,
        "category": Category.MOVIE,
        "year": 2019,
        "sources": [SourceRecord(provider_key=provider_key, provider_item_id=provider_item_id)],
        "created_at": base + timedelta(seconds=created_offset),
    }
    data.update(overrides)
    return CanonicalEntry(**data)
