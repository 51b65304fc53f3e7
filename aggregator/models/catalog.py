"""
Catalog Models

Canonical (de-duplicated) catalog records and the classifier's output.
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set, Tuple
from pydantic import BaseModel, ConfigDict, Field

from .provider import ProviderItem

HTML_TAG = re.compile(r"<[^>]+>")
OVERVIEW_MAX_CHARS = 200


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Category(str, Enum):
    """Canonical top-level categories."""
    MOVIE = "movie"
    SERIES = "series"
    ANIME = "anime"
    VARIETY = "variety"
    DOCUMENTARY = "documentary"
    SPORTS = "sports"


class Classification(BaseModel):
    """Classifier verdict for an accepted upstream item."""
    category: Category
    tags: Set[str] = Field(default_factory=set)


class ClassifiedItem(BaseModel):
    """
    An upstream item after classification, ready for the merge engine.

    Carries only what the merge engine writes into canonical entries.
    """
    title: str
    category: Category
    tags: Set[str] = Field(default_factory=set)
    year: Optional[int] = None
    rating: float = 0.0
    playback: str = ""
    play_from: str = ""
    remarks: str = ""
    poster: Optional[str] = None
    area: Optional[str] = None
    cast: Optional[str] = None
    director: Optional[str] = None
    overview: Optional[str] = None
    original_type: Optional[str] = None

    @classmethod
    def from_provider_item(
        cls, item: ProviderItem, classification: Classification
    ) -> "ClassifiedItem":
        overview = HTML_TAG.sub("", item.overview).strip()[:OVERVIEW_MAX_CHARS]
        return cls(
            title=item.title.strip(),
            category=classification.category,
            tags=set(classification.tags),
            year=item.year,
            rating=item.rating,
            playback=item.playback,
            play_from=item.play_from,
            remarks=item.remarks,
            poster=item.poster or None,
            area=item.area or None,
            cast=item.cast or None,
            director=item.director or None,
            overview=overview or None,
            original_type=item.category_text or None,
        )


class SourceRecord(BaseModel):
    """A provider-specific pointer attached to a canonical entry."""
    provider_key: str = Field(..., alias="providerKey")
    provider_item_id: str = Field(..., alias="providerItemId")
    playback: str = Field(default="", description="Raw playback descriptor")
    play_from: str = Field(default="", alias="playFrom")
    provider_title: Optional[str] = Field(None, alias="providerTitle")
    remarks: str = Field(default="", description="Serialization status, e.g. 'HD'")
    last_seen_at: datetime = Field(default_factory=utc_now, alias="lastSeenAt")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.provider_key, self.provider_item_id)


class CanonicalEntry(BaseModel):
    """
    One title across all upstream providers.

    Invariants: `sources` is never empty; `external_id`, when set, is unique
    across the catalog (enforced by the store).
    """
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str
    category: Category
    tags: Set[str] = Field(default_factory=set)
    year: Optional[int] = None
    rating: float = 0.0
    external_id: Optional[int] = Field(None, alias="externalId")
    is_enriched: bool = Field(default=False, alias="isEnriched")
    sources: List[SourceRecord] = Field(..., min_length=1)

    # Display metadata
    original_title: Optional[str] = Field(None, alias="originalTitle")
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    overview: Optional[str] = None
    cast: Optional[str] = None
    director: Optional[str] = None
    area: Optional[str] = None
    country: Optional[str] = None
    language: Optional[str] = None
    media_type: Optional[str] = Field(None, alias="mediaType")
    original_type: Optional[str] = Field(None, alias="originalType")

    # Bookkeeping
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")
    version: int = 0

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    def find_source(self, provider_key: str, provider_item_id: str) -> Optional[SourceRecord]:
        for record in self.sources:
            if record.identity == (provider_key, provider_item_id):
                return record
        return None

    def has_provider(self, provider_key: str) -> bool:
        return any(record.provider_key == provider_key for record in self.sources)


class IngestOutcome(str, Enum):
    """What the merge engine did with an ingested item."""
    CREATED = "created"
    MERGED = "merged"
    UPDATED = "updated"
    REJECTED = "rejected"


class IngestResult(BaseModel):
    outcome: IngestOutcome
    entry_id: Optional[str] = Field(None, alias="entryId")

    model_config = ConfigDict(populate_by_name=True)
