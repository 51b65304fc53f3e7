"""
Merge Engine

Identity resolution for incoming provider items and reconciliation of
canonical entries that turn out to share one external registry id.

Every write is optimistic: it carries the version it read, and a
VersionConflict restarts the step from a fresh read.
"""

from typing import Callable, Iterable, List, Optional, Tuple

from ..config import Settings, get_settings
from ..core.exceptions import (
    IdentityConflict,
    NotFoundError,
    ReconciliationError,
    VersionConflict,
)
from ..core.logging import get_logger
from ..models.catalog import (
    CanonicalEntry,
    ClassifiedItem,
    IngestOutcome,
    IngestResult,
    SourceRecord,
    utc_now,
)
from .catalog_store import CatalogStore, get_catalog_store

logger = get_logger(__name__)

YEAR_TOLERANCE = 1

# Fields an authoritative update may change on the survivor
METADATA_FIELDS = (
    "title", "original_title", "category", "year", "rating", "poster",
    "backdrop", "overview", "cast", "director", "country", "language",
    "media_type",
)


def years_compatible(a: Optional[int], b: Optional[int], tolerance: int = YEAR_TOLERANCE) -> bool:
    """Unknown years never block a match."""
    if a is None or b is None:
        return True
    return abs(a - b) <= tolerance


def merge_sources(primary: Iterable[SourceRecord], secondary: Iterable[SourceRecord]) -> List[SourceRecord]:
    """Union by (provider_key, provider_item_id), first occurrence wins."""
    seen = set()
    merged = []
    for record in list(primary) + list(secondary):
        if record.identity in seen:
            continue
        seen.add(record.identity)
        merged.append(record)
    return merged


class MergeEngine:
    """
    Ingests classified items into the canonical catalog.

    Usage:
        engine = MergeEngine(store)
        result = await engine.ingest(item, "feifan", "12345")
    """

    def __init__(self, store: CatalogStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    @property
    def max_retries(self) -> int:
        return self.settings.merge_max_retries

    # =========================================================================
    # INGEST
    # =========================================================================

    async def ingest(
        self,
        item: ClassifiedItem,
        provider_key: str,
        provider_item_id: str,
    ) -> IngestResult:
        """
        Attach one classified item to the catalog.

        1. Exact source match: refresh that source record only.
        2. Same title (year within tolerance), provider not yet attached:
           append a source record to the oldest such entry.
        3. Otherwise create a new entry.

        Raises:
            ReconciliationError: Conflicting writers outlasted the retries
        """
        for attempt in range(self.max_retries):
            try:
                existing = await self.store.find_by_source(provider_key, provider_item_id)
                if existing:
                    await self._refresh_source(existing, item, provider_key, provider_item_id)
                    return IngestResult(outcome=IngestOutcome.UPDATED, entry_id=existing.id)

                match = await self._find_title_match(item, provider_key)
                if match:
                    match.sources.append(self._source_record(item, provider_key, provider_item_id))
                    await self.store.replace(match, match.version)
                    logger.debug(
                        "source_merged",
                        entry_id=match.id,
                        provider=provider_key,
                        sources=len(match.sources)
                    )
                    return IngestResult(outcome=IngestOutcome.MERGED, entry_id=match.id)

                created = await self.store.insert(self._new_entry(item, provider_key, provider_item_id))
                return IngestResult(outcome=IngestOutcome.CREATED, entry_id=created.id)

            except VersionConflict as e:
                logger.debug(
                    "ingest_conflict_retry",
                    provider=provider_key,
                    item_id=provider_item_id,
                    entry_id=e.entry_id,
                    attempt=attempt + 1
                )

        raise ReconciliationError(f"{provider_key}:{provider_item_id}", self.max_retries)

    async def _refresh_source(
        self,
        entry: CanonicalEntry,
        item: ClassifiedItem,
        provider_key: str,
        provider_item_id: str,
    ):
        record = entry.find_source(provider_key, provider_item_id)
        record.playback = item.playback
        record.play_from = item.play_from
        record.remarks = item.remarks
        record.provider_title = item.title
        record.last_seen_at = utc_now()
        await self.store.replace(entry, entry.version)

    async def _find_title_match(self, item: ClassifiedItem, provider_key: str) -> Optional[CanonicalEntry]:
        for entry in await self.store.find_by_title(item.title):
            if entry.has_provider(provider_key):
                continue
            if years_compatible(entry.year, item.year):
                return entry
        return None

    @staticmethod
    def _source_record(item: ClassifiedItem, provider_key: str, provider_item_id: str) -> SourceRecord:
        return SourceRecord(
            provider_key=provider_key,
            provider_item_id=provider_item_id,
            playback=item.playback,
            play_from=item.play_from,
            provider_title=item.title,
            remarks=item.remarks,
        )

    def _new_entry(self, item: ClassifiedItem, provider_key: str, provider_item_id: str) -> CanonicalEntry:
        return CanonicalEntry(
            title=item.title,
            category=item.category,
            tags=set(item.tags),
            year=item.year,
            rating=item.rating,
            poster=item.poster,
            overview=item.overview,
            cast=item.cast,
            director=item.director,
            area=item.area,
            original_type=item.original_type,
            sources=[self._source_record(item, provider_key, provider_item_id)],
        )

    # =========================================================================
    # METADATA WRITES
    # =========================================================================

    async def apply_update(
        self,
        entry_id: str,
        mutate: Callable[[CanonicalEntry], None],
    ) -> Optional[CanonicalEntry]:
        """
        Apply a metadata change to one entry.

        `mutate` edits a fresh copy in place and may be called more than once.
        If the result claims an external id another entry holds, the two are
        reconciled instead of written.

        Returns:
            The stored entry that now carries the change (the survivor after a
            reconciliation), or None if the entry no longer exists
        """
        for attempt in range(self.max_retries):
            current = await self.store.get(entry_id)
            if current is None:
                return None

            pending = current.model_copy(deep=True)
            mutate(pending)

            try:
                if pending.external_id is not None:
                    holder = await self.store.find_by_external_id(pending.external_id)
                    if holder and holder.id != current.id:
                        return await self._reconcile_pair(
                            current, pending, holder,
                            external_id=pending.external_id,
                            carry_metadata=True,
                        )
                return await self.store.replace(pending, current.version)

            except (VersionConflict, IdentityConflict) as e:
                logger.debug(
                    "update_conflict_retry",
                    entry_id=entry_id,
                    conflict=type(e).__name__,
                    attempt=attempt + 1
                )

        raise ReconciliationError(entry_id, self.max_retries)

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    async def reconcile(
        self,
        entry_id: str,
        other_id: str,
        master_id: Optional[str] = None,
    ) -> CanonicalEntry:
        """
        Merge two entries known to be the same title.

        The survivor is `master_id` when given, else the earliest created.
        Safe to re-run: once one side is gone the survivor is returned as is.
        """
        for attempt in range(self.max_retries):
            first = await self.store.get(entry_id)
            second = await self.store.get(other_id)

            if first is None and second is None:
                raise NotFoundError("Canonical entry", entry_id)
            if first is None or second is None or first.id == second.id:
                return first or second

            if master_id is not None and master_id not in (first.id, second.id):
                raise NotFoundError("Canonical entry", master_id)

            survivor, loser = self._pick_survivor(first, second, master_id)
            external_id = survivor.external_id if survivor.external_id is not None else loser.external_id

            try:
                return await self._reconcile_pair(
                    first, first.model_copy(deep=True), second,
                    external_id=external_id,
                    master_id=master_id,
                )
            except (VersionConflict, IdentityConflict) as e:
                logger.debug(
                    "reconcile_conflict_retry",
                    entry_id=entry_id,
                    other_id=other_id,
                    conflict=type(e).__name__,
                    attempt=attempt + 1
                )

        raise ReconciliationError(entry_id, self.max_retries)

    @staticmethod
    def _pick_survivor(
        a: CanonicalEntry,
        b: CanonicalEntry,
        master_id: Optional[str] = None,
    ) -> Tuple[CanonicalEntry, CanonicalEntry]:
        if master_id == a.id:
            return a, b
        if master_id == b.id:
            return b, a
        ordered = sorted((a, b), key=lambda e: (e.created_at, e.id))
        return ordered[0], ordered[1]

    async def _reconcile_pair(
        self,
        current: CanonicalEntry,
        pending: CanonicalEntry,
        holder: CanonicalEntry,
        external_id: Optional[int],
        master_id: Optional[str] = None,
        carry_metadata: bool = False,
    ) -> CanonicalEntry:
        """
        Read-merge-write-delete over two entries.

        1. Write the survivor with the source/tag union, keeping the external
           id it already stores.
        2. Delete the loser at the version that was read.
        3. Claim the external id on the survivor.

        Any conflict propagates so the caller restarts from a fresh read.
        """
        survivor, loser = self._pick_survivor(current, holder, master_id)

        if survivor.id == current.id:
            merged = pending.model_copy(deep=True)
            other = holder
        else:
            merged = holder.model_copy(deep=True)
            other = pending
            if carry_metadata:
                for field in METADATA_FIELDS:
                    value = getattr(pending, field)
                    if value is not None:
                        setattr(merged, field, value)

        merged.sources = merge_sources(merged.sources, other.sources)
        merged.tags = set(merged.tags) | set(other.tags)
        enriched = pending.is_enriched or holder.is_enriched

        # Step 1: survivor keeps its stored identity until the loser is gone
        merged.external_id = survivor.external_id
        merged.is_enriched = survivor.is_enriched
        written = await self.store.replace(merged, survivor.version)

        # Step 2
        await self.store.delete(loser.id, loser.version)

        # Step 3
        if written.external_id != external_id or written.is_enriched != enriched:
            written.external_id = external_id
            written.is_enriched = enriched
            written = await self.store.replace(written, written.version)

        logger.info(
            "entry_reconciled",
            survivor_id=written.id,
            loser_id=loser.id,
            external_id=external_id,
            sources=len(written.sources)
        )
        return written


# Singleton instance
_merge_engine: Optional[MergeEngine] = None


def get_merge_engine() -> MergeEngine:
    """Get singleton MergeEngine instance."""
    global _merge_engine
    if _merge_engine is None:
        _merge_engine = MergeEngine(get_catalog_store())
    return _merge_engine
