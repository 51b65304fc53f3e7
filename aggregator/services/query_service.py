"""
Catalog Query Service

Live read queries against the providers, served through the cache and the
request racer.
"""

from typing import Any, Dict, Optional

from ..config import get_settings
from ..core.exceptions import NotFoundError
from ..core.logging import get_logger
from ..models.provider import ProviderAction, ProviderConfig, ProviderQuery
from .cache_service import CacheService, get_cache_service
from .racer import RaceMode, RaceResult, RequestRacer, get_racer, query_for

logger = get_logger(__name__)
settings = get_settings()


def _payload(result: RaceResult) -> Dict[str, Any]:
    """Provider-shaped response (`list`, `total`, `pagecount`) plus its origin."""
    return {
        "list": [item.model_dump(by_alias=True) for item in result.response.items],
        "total": result.response.total,
        "pagecount": result.response.pagecount,
        "provider": result.provider_key,
        "providerName": result.provider_name,
    }


class CatalogQueryService:
    """
    Cached live queries.

    Usage:
        service = get_query_service()
        page = await service.list_category(1, page=2)
    """

    def __init__(self, racer: RequestRacer, cache: CacheService):
        self.racer = racer
        self.cache = cache

    async def _cached(self, key: str, fetch) -> Dict[str, Any]:
        cached = await self.cache.get_json(key)
        if cached is not None:
            return cached
        payload = await fetch()
        await self.cache.set_json(key, payload, settings.cache_ttl_seconds)
        return payload

    async def list_category(self, category_id: int, page: int = 1) -> Dict[str, Any]:
        """One page of a logical category from the fastest healthy providers."""
        async def fetch():
            query = ProviderQuery(action=ProviderAction.DETAIL, category_id=category_id, page=page)
            return _payload(await self.racer.race(query_for(query)))

        return await self._cached(f"catalog:list:{category_id}:{page}", fetch)

    async def home_section(self, section: str) -> Dict[str, Any]:
        """A home section (e.g. `movie_hot`) using each provider's own category id."""
        if not any(section in p.home_map for p in self.racer.registry.ranked()):
            raise NotFoundError("Home section", section)

        def build(provider: ProviderConfig) -> ProviderQuery:
            local_id = provider.home_map[section]
            return ProviderQuery(action=ProviderAction.DETAIL, local_category_id=local_id)

        async def fetch():
            result = await self.racer.race(build, accepts=lambda p: section in p.home_map)
            return _payload(result)

        return await self._cached(f"catalog:home:{section}", fetch)

    async def provider_detail(self, provider_key: str, item_id: str) -> Dict[str, Any]:
        """Detail of a known item on a known provider."""
        async def fetch():
            query = ProviderQuery(action=ProviderAction.DETAIL, item_ids=[item_id])
            result = await self.racer.race(
                query_for(query), mode=RaceMode.SPECIFIC, provider_key=provider_key
            )
            return _payload(result)

        return await self._cached(f"catalog:detail:{provider_key}:{item_id}", fetch)

    async def search_sources(self, keyword: str) -> Dict[str, Any]:
        """Cross-catalog search; keeps only hits whose title contains the keyword."""
        keyword = keyword.strip()

        async def fetch():
            query = ProviderQuery(action=ProviderAction.DETAIL, keyword=keyword)
            result = await self.racer.race(
                query_for(query),
                mode=RaceMode.BROADCAST,
                item_filter=lambda item: keyword in item.title,
            )
            logger.debug(
                "search_sources",
                keyword=keyword,
                provider=result.provider_key,
                hits=len(result.response.items)
            )
            return _payload(result)

        return await self._cached(f"catalog:search:{keyword}", fetch)


# Singleton instance
_query_service: Optional[CatalogQueryService] = None


def get_query_service() -> CatalogQueryService:
    """Get singleton CatalogQueryService instance."""
    global _query_service
    if _query_service is None:
        _query_service = CatalogQueryService(get_racer(), get_cache_service())
    return _query_service
