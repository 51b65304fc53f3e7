"""Pydantic models for the catalog aggregator."""

from .catalog import (
    CanonicalEntry,
    Category,
    Classification,
    ClassifiedItem,
    IngestOutcome,
    IngestResult,
    SourceRecord,
)
from .provider import ProviderAction, ProviderConfig, ProviderItem, ProviderQuery, ProviderResponse
from .registry import RegistryCandidate, RegistryDetail

__all__ = [
    "CanonicalEntry",
    "Category",
    "Classification",
    "ClassifiedItem",
    "IngestOutcome",
    "IngestResult",
    "SourceRecord",
    "ProviderAction",
    "ProviderConfig",
    "ProviderItem",
    "ProviderQuery",
    "ProviderResponse",
    "RegistryCandidate",
    "RegistryDetail",
]
