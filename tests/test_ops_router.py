"""
Tests for the admin ops router
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from aggregator.core.exceptions import register_exception_handlers
from aggregator.jobs.enrichment import EnrichmentRunReport
from aggregator.jobs.sync import SyncReport
from aggregator.routers.ops import router as ops_router
from aggregator.services.health import HealthRegistry

from conftest import make_entry

HEADERS = {"X-API-Key": "secret"}


@pytest.fixture
def scheduler():
    mock = MagicMock()
    mock.get_job_status.return_value = {"running": False, "jobs": []}
    mock.trigger_sync_now = AsyncMock(return_value=SyncReport(fetched=3, created=2, rejected=1))
    mock.trigger_enrichment_now = AsyncMock(return_value=EnrichmentRunReport(processed=5, enriched=4, batches=1))
    return mock


@pytest.fixture
def racer(provider_registry):
    mock = MagicMock()
    mock.registry = provider_registry
    mock.health = HealthRegistry()
    return mock


@pytest.fixture
def client(test_settings, scheduler, racer, merge_engine):
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(ops_router)

    with patch("aggregator.routers.ops.get_settings", return_value=test_settings), \
         patch("aggregator.routers.ops.get_scheduler_service", return_value=scheduler), \
         patch("aggregator.routers.ops.get_racer", return_value=racer), \
         patch("aggregator.routers.ops.get_merge_engine", return_value=merge_engine):
        yield TestClient(app)


def test_requires_api_key(client):
    assert client.get("/ops/providers").status_code == 401
    assert client.get("/ops/providers", headers={"X-API-Key": "wrong"}).status_code == 401


def test_empty_admin_key_denies_everything(client, test_settings):
    test_settings.admin_api_key = ""
    assert client.get("/ops/scheduler", headers={"X-API-Key": ""}).status_code == 401


def test_providers_with_health(client, racer):
    for _ in range(3):
        racer.health.record_failure("beta")

    response = client.get("/ops/providers", headers=HEADERS)

    assert response.status_code == 200
    providers = response.json()["providers"]
    assert [p["key"] for p in providers] == ["alpha", "beta", "gamma"]
    assert providers[0]["health"]["state"] == "healthy"
    assert providers[1]["health"]["state"] == "open"
    assert providers[1]["health"]["eligible"] is False


def test_scheduler_status(client):
    response = client.get("/ops/scheduler", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"running": False, "jobs": []}


def test_trigger_sync(client, scheduler):
    response = client.post("/ops/trigger/sync", params={"hours": 6}, headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["report"]["created"] == 2
    scheduler.trigger_sync_now.assert_awaited_once_with(6)


def test_trigger_sync_validates_hours(client):
    assert client.post("/ops/trigger/sync", params={"hours": 0}, headers=HEADERS).status_code == 422


def test_trigger_enrichment_full_scan(client, scheduler):
    response = client.post("/ops/trigger/enrichment", params={"fullScan": "true"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["report"]["enriched"] == 4
    scheduler.trigger_enrichment_now.assert_awaited_once_with(full_scan=True)


def test_trigger_enrichment_disabled(client, scheduler):
    scheduler.trigger_enrichment_now.return_value = None

    response = client.post("/ops/trigger/enrichment", headers=HEADERS)

    assert response.json()["success"] is False
    assert response.json()["report"] is None


def test_reconcile_with_master(client, store):
    older = asyncio.run(store.insert(make_entry(provider_key="alpha", created_offset=0)))
    newer = asyncio.run(store.insert(make_entry(provider_key="beta", provider_item_id="9", created_offset=5)))

    response = client.post(
        "/ops/reconcile",
        json={"entryId": older.id, "otherId": newer.id, "masterId": newer.id},
        headers=HEADERS,
    )

    assert response.status_code == 200
    entry = response.json()["entry"]
    assert entry["id"] == newer.id
    assert {s["providerKey"] for s in entry["sources"]} == {"alpha", "beta"}


def test_reconcile_unknown_entries(client):
    response = client.post(
        "/ops/reconcile",
        json={"entryId": "a", "otherId": "b"},
        headers=HEADERS,
    )

    assert response.status_code == 404
    assert response.json()["error"] is True
