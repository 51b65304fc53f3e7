"""
Provider HTTP Client

Thin httpx wrapper around the video-CMS `provide/vod` API.
"""

from typing import Optional

import httpx
from pydantic import ValidationError

from ..config import get_settings
from ..core.exceptions import ProviderUnavailable
from ..core.logging import get_logger
from ..models.provider import ProviderConfig, ProviderQuery, ProviderResponse

logger = get_logger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json,text/plain,*/*",
}


class ProviderClient:
    """
    Fetches one page from one provider.

    Every failure mode (network, HTTP status, malformed JSON, payload shape)
    is raised as ProviderUnavailable so the racer can treat them alike.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        settings = get_settings()
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            headers=DEFAULT_HEADERS,
            proxy=settings.proxy_url or None,
            verify=settings.provider_verify_tls,
            follow_redirects=True,
        )

    async def fetch(self, provider: ProviderConfig, query: ProviderQuery) -> ProviderResponse:
        """
        GET one page of results.

        Args:
            provider: Target provider
            query: Logical query, rendered with the provider's category map

        Returns:
            Parsed response envelope (may hold an empty list)
        """
        params = query.to_params(provider)
        try:
            response = await self.client.get(provider.endpoint, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise ProviderUnavailable(provider.key, f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise ProviderUnavailable(provider.key, "invalid JSON") from e

        if not isinstance(payload, dict):
            raise ProviderUnavailable(provider.key, "unexpected payload shape")

        try:
            return ProviderResponse.model_validate(payload)
        except ValidationError as e:
            raise ProviderUnavailable(provider.key, f"bad payload: {e.error_count()} errors") from e

    async def close(self):
        if self._owns_client:
            await self.client.aclose()


# Singleton instance
_provider_client: Optional[ProviderClient] = None


def get_provider_client() -> ProviderClient:
    """Get singleton ProviderClient instance."""
    global _provider_client
    if _provider_client is None:
        _provider_client = ProviderClient()
    return _provider_client
