"""Services for the aggregation pipeline."""

from .cache_service import CacheService, get_cache_service
from .catalog_store import CatalogStore, InMemoryCatalogStore, get_catalog_store
from .classifier import classify
from .health import HealthRegistry, HealthState, get_health_registry
from .merge_engine import MergeEngine, get_merge_engine
from .metadata_registry import MetadataRegistry
from .provider_client import ProviderClient, get_provider_client
from .provider_registry import ProviderRegistry, get_provider_registry
from .query_service import CatalogQueryService, get_query_service
from .quota_manager import QuotaManager
from .racer import RaceMode, RaceResult, RequestRacer, get_racer
from .scheduler import SchedulerService, get_scheduler_service

__all__ = [
    "CacheService",
    "get_cache_service",
    "CatalogStore",
    "InMemoryCatalogStore",
    "get_catalog_store",
    "classify",
    "HealthRegistry",
    "HealthState",
    "get_health_registry",
    "MergeEngine",
    "get_merge_engine",
    "MetadataRegistry",
    "ProviderClient",
    "get_provider_client",
    "ProviderRegistry",
    "get_provider_registry",
    "CatalogQueryService",
    "get_query_service",
    "QuotaManager",
    "RaceMode",
    "RaceResult",
    "RequestRacer",
    "get_racer",
    "SchedulerService",
    "get_scheduler_service",
]
