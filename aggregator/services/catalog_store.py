"""
Canonical Catalog Store

Persistence seam for canonical entries. Writes are optimistic: each one
carries the version it read and fails with VersionConflict when the stored
entry moved on. External registry ids are unique across the store.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..core.exceptions import IdentityConflict, VersionConflict
from ..core.logging import get_logger
from ..models.catalog import CanonicalEntry, utc_now

logger = get_logger(__name__)


class CatalogStore(ABC):
    """Storage contract used by the merge engine and the enrichment worker."""

    @abstractmethod
    async def get(self, entry_id: str) -> Optional[CanonicalEntry]:
        ...

    @abstractmethod
    async def find_by_source(self, provider_key: str, provider_item_id: str) -> Optional[CanonicalEntry]:
        ...

    @abstractmethod
    async def find_by_title(self, title: str) -> List[CanonicalEntry]:
        """Entries whose title or a source title equals `title` (trimmed), oldest first."""
        ...

    @abstractmethod
    async def find_by_external_id(self, external_id: int) -> Optional[CanonicalEntry]:
        ...

    @abstractmethod
    async def insert(self, entry: CanonicalEntry) -> CanonicalEntry:
        """Store a new entry at version 1."""
        ...

    @abstractmethod
    async def replace(self, entry: CanonicalEntry, expected_version: int) -> CanonicalEntry:
        """Overwrite an entry if it is still at `expected_version`."""
        ...

    @abstractmethod
    async def delete(self, entry_id: str, expected_version: int) -> bool:
        """Delete an entry at `expected_version`. False if it is already gone."""
        ...

    @abstractmethod
    async def list_unenriched(self, limit: int) -> List[CanonicalEntry]:
        ...

    @abstractmethod
    async def count_unenriched(self) -> int:
        ...

    @abstractmethod
    async def list_missing_provider(self, provider_key: str, limit: int) -> List[CanonicalEntry]:
        """Entries with no source record from `provider_key`."""
        ...

    @abstractmethod
    async def count(self) -> int:
        ...


class InMemoryCatalogStore(CatalogStore):
    """
    Process-local store.

    Returns deep copies so callers never mutate stored state in place.
    """

    def __init__(self):
        self._entries: Dict[str, CanonicalEntry] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _copy(entry: CanonicalEntry) -> CanonicalEntry:
        return entry.model_copy(deep=True)

    def _ordered(self) -> List[CanonicalEntry]:
        return sorted(self._entries.values(), key=lambda e: (e.created_at, e.id))

    def _check_unique(self, entry: CanonicalEntry):
        if entry.external_id is None:
            return
        for other in self._entries.values():
            if other.id != entry.id and other.external_id == entry.external_id:
                raise IdentityConflict(entry.external_id, other.id)

    @staticmethod
    def _title_matches(entry: CanonicalEntry, title: str) -> bool:
        # Enrichment may rename the entry; provider titles still match
        if entry.title.strip() == title:
            return True
        return any((s.provider_title or "").strip() == title for s in entry.sources)

    @staticmethod
    def _check_sources(entry: CanonicalEntry):
        if not entry.sources:
            raise ValueError(f"Canonical entry {entry.id} must keep at least one source")

    async def get(self, entry_id: str) -> Optional[CanonicalEntry]:
        entry = self._entries.get(entry_id)
        return self._copy(entry) if entry else None

    async def find_by_source(self, provider_key: str, provider_item_id: str) -> Optional[CanonicalEntry]:
        for entry in self._ordered():
            if entry.find_source(provider_key, provider_item_id):
                return self._copy(entry)
        return None

    async def find_by_title(self, title: str) -> List[CanonicalEntry]:
        title = title.strip()
        return [self._copy(e) for e in self._ordered() if self._title_matches(e, title)]

    async def find_by_external_id(self, external_id: int) -> Optional[CanonicalEntry]:
        for entry in self._entries.values():
            if entry.external_id == external_id:
                return self._copy(entry)
        return None

    async def insert(self, entry: CanonicalEntry) -> CanonicalEntry:
        async with self._lock:
            self._check_sources(entry)
            if entry.id in self._entries:
                raise VersionConflict(entry.id)
            self._check_unique(entry)
            stored = self._copy(entry)
            stored.version = 1
            self._entries[stored.id] = stored
            return self._copy(stored)

    async def replace(self, entry: CanonicalEntry, expected_version: int) -> CanonicalEntry:
        async with self._lock:
            self._check_sources(entry)
            current = self._entries.get(entry.id)
            if current is None or current.version != expected_version:
                raise VersionConflict(entry.id)
            self._check_unique(entry)
            stored = self._copy(entry)
            stored.version = expected_version + 1
            stored.created_at = current.created_at
            stored.updated_at = utc_now()
            self._entries[stored.id] = stored
            return self._copy(stored)

    async def delete(self, entry_id: str, expected_version: int) -> bool:
        async with self._lock:
            current = self._entries.get(entry_id)
            if current is None:
                return False
            if current.version != expected_version:
                raise VersionConflict(entry_id)
            del self._entries[entry_id]
            return True

    async def list_unenriched(self, limit: int) -> List[CanonicalEntry]:
        pending = [e for e in self._ordered() if not e.is_enriched]
        return [self._copy(e) for e in pending[:limit]]

    async def count_unenriched(self) -> int:
        return sum(1 for e in self._entries.values() if not e.is_enriched)

    async def list_missing_provider(self, provider_key: str, limit: int) -> List[CanonicalEntry]:
        missing = [e for e in self._ordered() if not e.has_provider(provider_key)]
        return [self._copy(e) for e in missing[:limit]]

    async def count(self) -> int:
        return len(self._entries)


# Singleton instance
_catalog_store: Optional[CatalogStore] = None


def get_catalog_store() -> CatalogStore:
    """Get singleton CatalogStore instance."""
    global _catalog_store
    if _catalog_store is None:
        _catalog_store = InMemoryCatalogStore()
        logger.info("catalog_store_initialized", backend="memory")
    return _catalog_store
