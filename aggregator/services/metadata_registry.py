"""
Metadata Registry Client

TMDB v3 search and detail lookups used by the enrichment worker.
"""

from typing import Any, Callable, List, Optional, TypeVar

import httpx
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..core.exceptions import ConfigurationError, RegistryError
from ..core.logging import get_logger
from ..models.registry import RegistryCandidate, RegistryDetail
from .quota_manager import REGISTRY_API, QuotaManager

logger = get_logger(__name__)

TMDB_API_BASE = "https://api.themoviedb.org/3"
TMDB_POSTER_BASE = "https://image.tmdb.org/t/p/w500"
TMDB_BACKDROP_BASE = "https://image.tmdb.org/t/p/original"

SEARCHABLE_MEDIA_TYPES = ("movie", "tv")

T = TypeVar("T")


def poster_url(path: Optional[str]) -> Optional[str]:
    return f"{TMDB_POSTER_BASE}{path}" if path else None


def backdrop_url(path: Optional[str]) -> Optional[str]:
    return f"{TMDB_BACKDROP_BASE}{path}" if path else None


class MetadataRegistry:
    """
    TMDB client.

    Authenticates with the v4 read access token (bearer) when set, else the
    v3 `api_key` parameter. Every request is metered through QuotaManager.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        quota_manager: Optional[QuotaManager] = None,
    ):
        self.settings = settings or get_settings()
        if not (self.settings.tmdb_read_access_token or self.settings.tmdb_api_key):
            raise ConfigurationError(
                "TMDB credentials missing: set TMDB_READ_ACCESS_TOKEN or TMDB_API_KEY"
            )

        headers = {"Accept": "application/json"}
        params = {"language": self.settings.tmdb_language}
        if self.settings.tmdb_read_access_token:
            headers["Authorization"] = f"Bearer {self.settings.tmdb_read_access_token}"
        else:
            params["api_key"] = self.settings.tmdb_api_key

        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            base_url=TMDB_API_BASE,
            timeout=self.settings.registry_timeout_seconds,
        )
        self._headers = headers
        self._params = params
        self.quota_manager = quota_manager or QuotaManager()

    async def _get(self, path: str, **params) -> dict:
        await self.quota_manager.require_quota(REGISTRY_API)
        response = await self.client.get(
            path,
            params={**self._params, **params},
            headers=self._headers,
        )
        await self.quota_manager.record_usage(REGISTRY_API)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise RegistryError(path, "invalid JSON") from e

    @staticmethod
    def _parse(path: str, parse: Callable[[], T]) -> T:
        """Run a payload parser, reporting malformed payloads as RegistryError."""
        try:
            return parse()
        except (ValidationError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise RegistryError(path, f"{type(e).__name__}: {e}") from e

    async def search(self, title: str) -> List[RegistryCandidate]:
        """
        Multi-search by title.

        Returns:
            Movie and tv candidates in registry relevance order

        Raises:
            RegistryError: Body is not JSON or a hit is malformed
        """
        path = "/search/multi"
        data: Any = await self._get(path, query=title, include_adult="false")
        return self._parse(path, lambda: [
            RegistryCandidate.from_api(result)
            for result in data.get("results") or []
            if result.get("media_type") in SEARCHABLE_MEDIA_TYPES and result.get("id")
        ])

    async def detail(self, media_type: str, registry_id: int) -> RegistryDetail:
        """Full detail with credits for one movie or tv show."""
        path = f"/{media_type}/{registry_id}"
        data: Any = await self._get(path, append_to_response="credits")
        return self._parse(path, lambda: RegistryDetail.from_api(data, media_type))

    async def close(self):
        if self._owns_client:
            await self.client.aclose()
