"""
Sync Job

Pulls recently updated items from the sync providers into the canonical
catalog, and backfills fast providers onto entries that lack them.
Incremental sync runs every 30 minutes, backfill nightly.
"""

import asyncio
from typing import List, Optional

from pydantic import BaseModel, Field

from ..config import Settings, get_settings
from ..core.exceptions import AggregateUnavailable, ProviderUnavailable, ReconciliationError
from ..core.logging import get_logger
from ..models.catalog import ClassifiedItem, IngestOutcome
from ..models.provider import ProviderAction, ProviderItem, ProviderQuery
from ..services.classifier import classify
from ..services.merge_engine import MergeEngine, get_merge_engine
from ..services.catalog_store import CatalogStore, get_catalog_store
from ..services.racer import RaceMode, RequestRacer, get_racer, query_for

logger = get_logger(__name__)


class SyncReport(BaseModel):
    """Per-outcome counts for one sync or backfill run."""
    fetched: int = 0
    created: int = 0
    merged: int = 0
    updated: int = 0
    rejected: int = 0
    failed: int = 0
    pages: int = 0
    unavailable_providers: List[str] = Field(default_factory=list)

    def count(self, outcome: IngestOutcome):
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)


class SyncJob:
    """
    Classifies provider items and feeds them to the merge engine.

    Provider calls go through SPECIFIC-mode races: a provider that has
    nothing new is not unhealthy.
    """

    def __init__(
        self,
        racer: RequestRacer,
        merge_engine: MergeEngine,
        store: CatalogStore,
        settings: Optional[Settings] = None,
    ):
        self.racer = racer
        self.merge_engine = merge_engine
        self.store = store
        self.settings = settings or get_settings()

    async def ingest_item(self, provider_key: str, item: ProviderItem, report: SyncReport):
        """Classify one item and ingest it unless rejected."""
        report.fetched += 1
        classification = classify(item, banned_category_ids=self.settings.banned_category_ids)
        if classification is None:
            report.count(IngestOutcome.REJECTED)
            return

        classified = ClassifiedItem.from_provider_item(item, classification)
        try:
            result = await self.merge_engine.ingest(classified, provider_key, item.provider_item_id)
        except ReconciliationError as e:
            logger.warning(
                "sync_ingest_failed",
                provider=provider_key,
                item_id=item.provider_item_id,
                error=e.message
            )
            report.failed += 1
            return
        report.count(result.outcome)

    # =========================================================================
    # INCREMENTAL SYNC
    # =========================================================================

    async def sync_provider(self, provider_key: str, hours: int, report: SyncReport):
        page = 1
        while page <= self.settings.sync_max_pages:
            query = ProviderQuery(action=ProviderAction.DETAIL, page=page, hours=hours)
            try:
                result = await self.racer.race(
                    query_for(query), mode=RaceMode.SPECIFIC, provider_key=provider_key
                )
            except AggregateUnavailable as e:
                error = e.errors.get(provider_key)
                if isinstance(error, ProviderUnavailable) and error.empty:
                    if page == 1:
                        logger.info("sync_provider_quiet", provider=provider_key, hours=hours)
                    break
                if page == 1:
                    logger.warning(
                        "sync_provider_unavailable",
                        provider=provider_key,
                        reason=str(error or e.message)
                    )
                    report.unavailable_providers.append(provider_key)
                break

            report.pages += 1
            for item in result.response.items:
                await self.ingest_item(provider_key, item, report)

            if page >= result.response.pagecount:
                break
            page += 1

    async def sync_recent(self, hours: Optional[int] = None) -> SyncReport:
        """
        Ingest everything the sync providers updated in the last `hours`.

        Returns:
            SyncReport with per-outcome counts
        """
        hours = hours or self.settings.sync_hours
        report = SyncReport()

        for provider_key in self.settings.sync_providers:
            if provider_key not in self.racer.registry:
                logger.warning("sync_provider_unknown", provider=provider_key)
                continue
            await self.sync_provider(provider_key, hours, report)

        logger.info("sync_recent_complete", hours=hours, **report.model_dump())
        return report

    # =========================================================================
    # BACKFILL
    # =========================================================================

    async def backfill_sources(self, limit: int = 200) -> SyncReport:
        """
        Search each backfill provider for entries that lack it and ingest
        the exact-title hit.
        """
        report = SyncReport()

        for provider_key in self.settings.backfill_providers:
            if provider_key not in self.racer.registry:
                logger.warning("backfill_provider_unknown", provider=provider_key)
                continue

            entries = await self.store.list_missing_provider(provider_key, limit)
            for entry in entries:
                query = ProviderQuery(action=ProviderAction.DETAIL, keyword=entry.title)
                try:
                    result = await self.racer.race(
                        query_for(query), mode=RaceMode.SPECIFIC, provider_key=provider_key
                    )
                except AggregateUnavailable:
                    continue

                match = next(
                    (i for i in result.response.items if i.title.strip() == entry.title.strip()),
                    None,
                )
                if match:
                    await self.ingest_item(provider_key, match, report)

        logger.info("backfill_complete", **report.model_dump())
        return report


# Singleton instance
_sync_job: Optional[SyncJob] = None


def get_sync_job() -> SyncJob:
    """Get singleton SyncJob instance."""
    global _sync_job
    if _sync_job is None:
        _sync_job = SyncJob(
            racer=get_racer(),
            merge_engine=get_merge_engine(),
            store=get_catalog_store(),
        )
    return _sync_job


async def run_sync_job(hours: Optional[int] = None) -> SyncReport:
    """Entry point for scheduled job."""
    return await get_sync_job().sync_recent(hours)


async def run_backfill_job(limit: int = 200) -> SyncReport:
    """Entry point for scheduled job."""
    return await get_sync_job().backfill_sources(limit)


if __name__ == "__main__":
    # Manual run for testing
    asyncio.run(run_sync_job())
