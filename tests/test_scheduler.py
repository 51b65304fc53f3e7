"""
Tests for the background job scheduler
"""

from unittest.mock import AsyncMock, patch

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from aggregator.jobs.enrichment import EnrichmentRunReport
from aggregator.jobs.sync import SyncReport
from aggregator.services.scheduler import SchedulerService


@pytest.fixture
def service():
    service = SchedulerService()
    service.scheduler = AsyncIOScheduler()
    return service


def test_setup_jobs_registers_all_jobs(service):
    service.setup_jobs()

    status = service.get_job_status()
    assert status["running"] is False
    assert sorted(job["id"] for job in status["jobs"]) == [
        "provider_sync", "source_backfill", "tmdb_enrichment",
    ]


@pytest.mark.asyncio
async def test_trigger_sync_returns_report(service):
    report = SyncReport(created=1)
    with patch("aggregator.jobs.sync.run_sync_job", AsyncMock(return_value=report)) as job:
        assert await service.trigger_sync_now(hours=12) is report
    job.assert_awaited_once_with(12)


@pytest.mark.asyncio
async def test_failed_job_is_logged_not_raised(service):
    with patch("aggregator.jobs.sync.run_sync_job", AsyncMock(side_effect=RuntimeError("boom"))):
        assert await service.trigger_sync_now() is None


@pytest.mark.asyncio
async def test_enrichment_skipped_when_disabled(service):
    with patch("aggregator.jobs.enrichment.run_enrichment_job", AsyncMock(return_value=None)):
        assert await service.trigger_enrichment_now() is None


@pytest.mark.asyncio
async def test_enrichment_full_scan(service):
    report = EnrichmentRunReport(enriched=3)
    with patch("aggregator.jobs.enrichment.run_enrichment_job", AsyncMock(return_value=report)) as job:
        assert await service.trigger_enrichment_now(full_scan=True) is report
    job.assert_awaited_once_with(full_scan=True)


@pytest.mark.asyncio
async def test_backfill_job(service):
    report = SyncReport(merged=2)
    with patch("aggregator.jobs.sync.run_backfill_job", AsyncMock(return_value=report)):
        assert await service._run_backfill() is report
