"""
Background Job Scheduler

Manages scheduled background tasks using APScheduler.
- Sync: pulls recent provider updates every 30 minutes
- Enrichment: TMDB enrichment batches every 10 minutes
- Backfill: attaches missing fast providers nightly
"""

from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import get_settings
from ..core.logging import bind_job_context, clear_job_context, get_logger

logger = get_logger(__name__)
settings = get_settings()

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
    return _scheduler


class SchedulerService:
    """
    Manages background job scheduling.

    Jobs:
    1. Incremental sync (every 30 minutes at :00/:30)
    2. Enrichment (every 10 minutes; skipped when TMDB is not configured)
    3. Source backfill (nightly at 03:30)
    """

    def __init__(self):
        self.scheduler = get_scheduler()
        self._sync_job_id = "provider_sync"
        self._enrichment_job_id = "tmdb_enrichment"
        self._backfill_job_id = "source_backfill"

    async def _run_sync(self, hours: Optional[int] = None):
        """Execute the incremental sync job."""
        from ..jobs.sync import run_sync_job

        bind_job_context("sync")
        logger.info("scheduler_job_started", job="sync")
        try:
            report = await run_sync_job(hours)
            logger.info("scheduler_job_completed", job="sync", created=report.created, merged=report.merged)
            return report
        except Exception as e:
            logger.error("scheduler_job_failed", job="sync", error=str(e))
        finally:
            clear_job_context()

    async def _run_enrichment(self, full_scan: bool = False):
        """Execute the enrichment job."""
        from ..jobs.enrichment import run_enrichment_job

        bind_job_context("enrichment")
        logger.info("scheduler_job_started", job="enrichment", full_scan=full_scan)
        try:
            report = await run_enrichment_job(full_scan=full_scan)
            if report is None:
                logger.info("scheduler_job_skipped", job="enrichment", reason="not_configured")
                return None
            logger.info("scheduler_job_completed", job="enrichment", enriched=report.enriched)
            return report
        except Exception as e:
            logger.error("scheduler_job_failed", job="enrichment", error=str(e))
        finally:
            clear_job_context()

    async def _run_backfill(self):
        """Execute the source backfill job."""
        from ..jobs.sync import run_backfill_job

        bind_job_context("backfill")
        logger.info("scheduler_job_started", job="backfill")
        try:
            report = await run_backfill_job()
            logger.info("scheduler_job_completed", job="backfill", merged=report.merged)
            return report
        except Exception as e:
            logger.error("scheduler_job_failed", job="backfill", error=str(e))
        finally:
            clear_job_context()

    def setup_jobs(self):
        """Configure and add all scheduled jobs."""

        self.scheduler.add_job(
            self._run_sync,
            trigger=CronTrigger(minute="0,30"),
            id=self._sync_job_id,
            name="Provider Sync",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.add_job(
            self._run_enrichment,
            trigger=IntervalTrigger(minutes=10),
            id=self._enrichment_job_id,
            name="TMDB Enrichment",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.add_job(
            self._run_backfill,
            trigger=CronTrigger(hour=3, minute=30),
            id=self._backfill_job_id,
            name="Source Backfill",
            replace_existing=True,
            max_instances=1,
        )

        logger.info(
            "scheduler_jobs_configured",
            sync_schedule="every 30 min at :00/:30",
            enrichment_schedule="every 10 min",
            backfill_schedule="daily at 03:30"
        )

    def start(self):
        """Start the scheduler."""
        if not self.scheduler.running:
            self.setup_jobs()
            self.scheduler.start()
            logger.info("scheduler_started")

    def stop(self):
        """Stop the scheduler gracefully."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            logger.info("scheduler_stopped")

    def get_job_status(self) -> dict:
        """Get status of all scheduled jobs."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
            })

        return {
            "running": self.scheduler.running,
            "jobs": jobs,
            "current_time": datetime.now(timezone.utc).isoformat(),
        }

    async def trigger_sync_now(self, hours: Optional[int] = None):
        """Manually trigger the sync job."""
        logger.info("manual_trigger", job="sync")
        return await self._run_sync(hours)

    async def trigger_enrichment_now(self, full_scan: bool = False):
        """Manually trigger the enrichment job."""
        logger.info("manual_trigger", job="enrichment", full_scan=full_scan)
        return await self._run_enrichment(full_scan=full_scan)


# Singleton instance
_scheduler_service: Optional[SchedulerService] = None


def get_scheduler_service() -> SchedulerService:
    """Get singleton SchedulerService instance."""
    global _scheduler_service
    if _scheduler_service is None:
        _scheduler_service = SchedulerService()
    return _scheduler_service
