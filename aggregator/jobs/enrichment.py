"""
Enrichment Job

Upgrades canonical entries with authoritative TMDB metadata.
Runs every 10 minutes via APScheduler; a full scan can be started from
the ops router.

Per entry: clean title → search → filter candidates by type and year →
pick best → fetch detail → apply through the merge engine, so a clash on
external id reconciles the two entries.
"""

import asyncio
import re
from enum import Enum
from typing import List, Optional, Set

import httpx
from pydantic import BaseModel

from ..config import Settings, get_settings
from ..core.exceptions import (
    ConfigurationError,
    QuotaExceededError,
    ReconciliationError,
    RegistryError,
)
from ..core.logging import get_logger
from ..models.catalog import CanonicalEntry, Category
from ..models.registry import RegistryCandidate, RegistryDetail
from ..services.cache_service import get_cache_service
from ..services.catalog_store import CatalogStore, get_catalog_store
from ..services.merge_engine import MergeEngine, get_merge_engine, years_compatible
from ..services.metadata_registry import MetadataRegistry, backdrop_url, poster_url
from ..services.quota_manager import QuotaManager

logger = get_logger(__name__)

# TMDB genre id -> catalog tags
GENRE_ID_TO_TAGS = {
    28: ("action",), 12: ("adventure",), 16: ("animation",), 35: ("comedy",),
    80: ("crime",), 99: ("documentary",), 18: ("drama",), 10751: ("family",),
    14: ("fantasy",), 36: ("history",), 27: ("horror",), 10402: ("music",),
    9648: ("mystery",), 10749: ("romance",), 878: ("scifi",), 10770: ("tv_movie",),
    53: ("thriller",), 10752: ("war",), 37: ("westerns",),
    # TV genres
    10759: ("action", "adventure"), 10762: ("kids",), 10763: ("news",),
    10764: ("reality",), 10765: ("scifi", "fantasy"), 10766: ("soap",),
    10767: ("talk",), 10768: ("war", "politics"),
}

# Company/network name fragment -> platform tag
PLATFORM_COMPANIES = (
    ("netflix", "netflix"),
    ("hbo", "hbo"),
    ("disney", "disney"),
    ("apple", "apple_tv"),
)

# Categories the registry's movie/tv split must not overwrite
PROTECTED_CATEGORIES = {Category.ANIME, Category.VARIETY, Category.DOCUMENTARY, Category.SPORTS}

SEASON_MARKER = re.compile(r"第[0-9一二三四五六七八九十百]+[季部]")
SEASON_CODE = re.compile(r"(?<![A-Za-z])S\d{1,2}(?!\d)|Season\s*\d+", re.IGNORECASE)
QUALITY_NOISE = re.compile(
    r"(?<![A-Za-z])(?:1080P|720P|4K|HD|BD|TC)(?![A-Za-z])|中字|双语|国语|粤语|未删减|完整版",
    re.IGNORECASE,
)
BRACKETED = re.compile(r"[\[\(（【].*?[\]\)）】]")
WHITESPACE = re.compile(r"\s+")


def clean_title(title: str) -> str:
    """Strip season markers, resolution/language noise and bracketed text."""
    cleaned = SEASON_MARKER.sub(" ", title or "")
    cleaned = SEASON_CODE.sub(" ", cleaned)
    cleaned = QUALITY_NOISE.sub(" ", cleaned)
    cleaned = BRACKETED.sub(" ", cleaned)
    return WHITESPACE.sub(" ", cleaned).strip()


def media_type_matches(category: Category, media_type: str) -> bool:
    if category == Category.MOVIE:
        return media_type == "movie"
    if category == Category.SERIES:
        return media_type == "tv"
    return media_type in ("movie", "tv")


def filter_candidates(entry: CanonicalEntry, candidates: List[RegistryCandidate]) -> List[RegistryCandidate]:
    """
    Keep candidates whose type fits the entry's category and whose year is
    within tolerance. With a local year, undated candidates are dropped.
    """
    kept = []
    for candidate in candidates:
        if not media_type_matches(entry.category, candidate.media_type):
            continue
        if entry.year is not None:
            if candidate.year is None or not years_compatible(entry.year, candidate.year):
                continue
        kept.append(candidate)
    return kept


def select_candidate(
    entry: CanonicalEntry,
    cleaned_title: str,
    candidates: List[RegistryCandidate],
) -> Optional[RegistryCandidate]:
    """Exact title match first, else the first passing candidate."""
    passing = filter_candidates(entry, candidates)
    if not passing:
        return None

    wanted = {cleaned_title, entry.title.strip()}
    for candidate in passing:
        if candidate.title in wanted or candidate.original_title in wanted:
            return candidate
    return passing[0]


def genre_tags(genre_ids: List[int]) -> Set[str]:
    tags: Set[str] = set()
    for genre_id in genre_ids:
        tags.update(GENRE_ID_TO_TAGS.get(genre_id, ()))
    return tags


def platform_tags(companies: List[str]) -> Set[str]:
    names = [c.lower() for c in companies]
    return {tag for fragment, tag in PLATFORM_COMPANIES if any(fragment in n for n in names)}


class EnrichmentOutcome(str, Enum):
    ENRICHED = "enriched"
    NO_MATCH = "no_match"
    FAILED = "failed"
    SKIPPED = "skipped"


class EnrichmentUpdate(BaseModel):
    """Authoritative metadata for one entry, applied via the merge engine."""
    external_id: int
    media_type: str
    title: str
    original_title: Optional[str] = None
    category: Category
    year: Optional[int] = None
    rating: float = 0.0
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    overview: Optional[str] = None
    cast: Optional[str] = None
    director: Optional[str] = None
    country: Optional[str] = None
    language: Optional[str] = None
    tags: Set[str] = set()

    def apply(self, entry: CanonicalEntry):
        """Mutate `entry` in place. Safe to call repeatedly."""
        entry.external_id = self.external_id
        entry.media_type = self.media_type
        entry.title = self.title or entry.title
        entry.original_title = self.original_title or entry.original_title
        entry.category = self.category
        entry.year = self.year or entry.year
        entry.rating = self.rating or entry.rating
        entry.poster = self.poster or entry.poster
        entry.backdrop = self.backdrop or entry.backdrop
        entry.overview = self.overview or entry.overview
        entry.cast = self.cast or entry.cast
        entry.director = self.director or entry.director
        entry.country = self.country or entry.country
        entry.language = self.language or entry.language
        entry.tags = set(entry.tags) | self.tags
        entry.is_enriched = True


def build_update(
    entry: CanonicalEntry,
    candidate: RegistryCandidate,
    detail: RegistryDetail,
) -> EnrichmentUpdate:
    category = entry.category
    if category not in PROTECTED_CATEGORIES:
        category = Category.MOVIE if detail.media_type == "movie" else Category.SERIES

    return EnrichmentUpdate(
        external_id=detail.id,
        media_type=detail.media_type,
        title=detail.title or candidate.title,
        original_title=detail.original_title,
        category=category,
        year=detail.year or candidate.year,
        rating=round(detail.vote_average or candidate.vote_average, 1),
        poster=poster_url(detail.poster_path or candidate.poster_path),
        backdrop=backdrop_url(detail.backdrop_path or candidate.backdrop_path),
        overview=detail.overview or candidate.overview,
        cast=", ".join(detail.cast) or None,
        director=", ".join(detail.directors) or None,
        country=detail.country_name,
        language=detail.language,
        tags=genre_tags(detail.genre_ids) | platform_tags(detail.companies),
    )


def mark_processed(entry: CanonicalEntry):
    """No-match pass: keep every existing field, including any external id."""
    entry.is_enriched = True


class EnrichmentBatchResult(BaseModel):
    processed: int = 0
    enriched: int = 0
    no_match: int = 0
    failed: int = 0
    skipped: int = 0
    quota_exhausted: bool = False

    def add(self, other: "EnrichmentBatchResult"):
        self.processed += other.processed
        self.enriched += other.enriched
        self.no_match += other.no_match
        self.failed += other.failed
        self.skipped += other.skipped
        self.quota_exhausted = self.quota_exhausted or other.quota_exhausted


class EnrichmentRunReport(EnrichmentBatchResult):
    batches: int = 0
    remaining: int = 0
    stalled: bool = False


class EnrichmentWorker:
    """
    Background enrichment over unenriched canonical entries.

    Batches run sequentially; entries inside a batch run concurrently under
    a semaphore.
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        store: CatalogStore,
        merge_engine: MergeEngine,
        settings: Optional[Settings] = None,
    ):
        self.registry = registry
        self.store = store
        self.merge_engine = merge_engine
        self.settings = settings or get_settings()
        self._quota_exhausted = False

    async def enrich_entry(self, entry: CanonicalEntry) -> EnrichmentOutcome:
        """Run one entry through search → select → detail → write."""
        cleaned = clean_title(entry.title)
        try:
            candidates = await self.registry.search(cleaned) if cleaned else []
            candidate = select_candidate(entry, cleaned, candidates)

            if candidate is None:
                written = await self.merge_engine.apply_update(entry.id, mark_processed)
                if written is None:
                    return EnrichmentOutcome.SKIPPED
                logger.debug("enrichment_no_match", entry_id=entry.id, title=cleaned)
                return EnrichmentOutcome.NO_MATCH

            detail = await self.registry.detail(candidate.media_type, candidate.id)
            update = build_update(entry, candidate, detail)
            written = await self.merge_engine.apply_update(entry.id, update.apply)
            if written is None:
                return EnrichmentOutcome.SKIPPED

            logger.debug(
                "entry_enriched",
                entry_id=written.id,
                external_id=update.external_id,
                title=update.title
            )
            return EnrichmentOutcome.ENRICHED

        except QuotaExceededError:
            self._quota_exhausted = True
            return EnrichmentOutcome.FAILED
        except (httpx.HTTPError, RegistryError) as e:
            logger.warning(
                "enrichment_registry_error",
                entry_id=entry.id,
                title=cleaned,
                error=str(e)
            )
            return EnrichmentOutcome.FAILED
        except ReconciliationError as e:
            logger.warning("enrichment_write_failed", entry_id=entry.id, error=e.message)
            return EnrichmentOutcome.FAILED

    async def run_batch(self) -> EnrichmentBatchResult:
        """Enrich up to `enrichment_batch_size` unenriched entries."""
        self._quota_exhausted = False
        entries = await self.store.list_unenriched(self.settings.enrichment_batch_size)
        result = EnrichmentBatchResult()
        if not entries:
            return result

        semaphore = asyncio.Semaphore(self.settings.enrichment_concurrency)

        async def bounded(entry: CanonicalEntry) -> EnrichmentOutcome:
            async with semaphore:
                if self._quota_exhausted:
                    return EnrichmentOutcome.SKIPPED
                return await self.enrich_entry(entry)

        outcomes = await asyncio.gather(*(bounded(e) for e in entries))

        for outcome in outcomes:
            result.processed += 1
            if outcome == EnrichmentOutcome.ENRICHED:
                result.enriched += 1
            elif outcome == EnrichmentOutcome.NO_MATCH:
                result.no_match += 1
            elif outcome == EnrichmentOutcome.FAILED:
                result.failed += 1
            else:
                result.skipped += 1
        result.quota_exhausted = self._quota_exhausted

        logger.info("enrichment_batch_complete", **result.model_dump())
        return result

    async def run(self, max_batches: Optional[int] = None) -> EnrichmentRunReport:
        """
        Loop batches until nothing is left, the limit is hit, progress
        stops, or the registry quota runs out.
        """
        max_batches = max_batches or self.settings.enrichment_max_batches
        report = EnrichmentRunReport()
        previous_remaining: Optional[int] = None

        while report.batches < max_batches:
            remaining = await self.store.count_unenriched()
            report.remaining = remaining
            if remaining == 0:
                break
            if previous_remaining is not None and remaining >= previous_remaining:
                logger.warning(
                    "enrichment_stalled",
                    remaining=remaining,
                    batches=report.batches
                )
                report.stalled = True
                break
            previous_remaining = remaining

            batch = await self.run_batch()
            report.add(batch)
            report.batches += 1

            if batch.quota_exhausted:
                logger.warning("enrichment_quota_exhausted", batches=report.batches)
                break
            if batch.processed == 0:
                break
            if self.settings.enrichment_batch_pause_seconds > 0:
                await asyncio.sleep(self.settings.enrichment_batch_pause_seconds)

        report.remaining = await self.store.count_unenriched()
        logger.info("enrichment_run_complete", **report.model_dump())
        return report


# Singleton instance
_enrichment_worker: Optional[EnrichmentWorker] = None


def get_enrichment_worker() -> Optional[EnrichmentWorker]:
    """
    Get singleton EnrichmentWorker, or None when TMDB credentials are missing.

    The rest of the pipeline keeps running without enrichment.
    """
    global _enrichment_worker
    if _enrichment_worker is None:
        try:
            registry = MetadataRegistry(quota_manager=QuotaManager(get_cache_service().redis))
        except ConfigurationError as e:
            logger.warning("enrichment_disabled", reason=e.message)
            return None
        _enrichment_worker = EnrichmentWorker(
            registry=registry,
            store=get_catalog_store(),
            merge_engine=get_merge_engine(),
        )
    return _enrichment_worker


async def close_enrichment_worker():
    """Close the registry client of the worker, if one was ever created."""
    global _enrichment_worker
    if _enrichment_worker is not None:
        await _enrichment_worker.registry.close()
        _enrichment_worker = None


async def run_enrichment_job(full_scan: bool = False) -> Optional[EnrichmentRunReport]:
    """Entry point for scheduled job."""
    worker = get_enrichment_worker()
    if worker is None:
        return None
    settings = get_settings()
    max_batches = (
        settings.enrichment_full_scan_max_batches if full_scan
        else settings.enrichment_max_batches
    )
    return await worker.run(max_batches=max_batches)


if __name__ == "__main__":
    # Manual full scan
    asyncio.run(run_enrichment_job(full_scan=True))
