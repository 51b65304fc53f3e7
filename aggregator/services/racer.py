"""
Request Racer

Queries several providers at once and returns the first non-empty answer.

Modes:
- DEFAULT: top-K healthy providers by priority
- SPECIFIC: one named provider, no health feedback
- BROADCAST: every healthy provider (cross-catalog search)
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..config import Settings, get_settings
from ..core.concurrency import AllFailedError, first_success
from ..core.exceptions import AggregateUnavailable, ProviderUnavailable
from ..core.logging import get_logger
from ..models.provider import ProviderConfig, ProviderItem, ProviderQuery, ProviderResponse
from .health import HealthRegistry, get_health_registry
from .provider_client import ProviderClient, get_provider_client
from .provider_registry import ProviderRegistry, get_provider_registry

logger = get_logger(__name__)

QueryBuilder = Callable[[ProviderConfig], ProviderQuery]
ProviderPredicate = Callable[[ProviderConfig], bool]
ItemFilter = Callable[[ProviderItem], bool]


class RaceMode(str, Enum):
    DEFAULT = "default"
    SPECIFIC = "specific"
    BROADCAST = "broadcast"


@dataclass
class RaceResult:
    """Winning provider's answer."""
    provider_key: str
    provider_name: str
    response: ProviderResponse
    elapsed_ms: int


def query_for(query: ProviderQuery) -> QueryBuilder:
    """Builder that sends the same logical query to every provider."""
    return lambda provider: query


class RequestRacer:
    """
    Races provider calls under per-call timeouts.

    Owns its HealthRegistry: outcomes of DEFAULT and BROADCAST races are
    fed back into it, SPECIFIC lookups are not (a miss on a known item is
    not the provider's fault).
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        health: HealthRegistry,
        client: ProviderClient,
        settings: Optional[Settings] = None,
    ):
        self.registry = registry
        self.health = health
        self.client = client
        self.settings = settings or get_settings()

    def select(
        self,
        mode: RaceMode,
        provider_key: Optional[str] = None,
        accepts: Optional[ProviderPredicate] = None,
    ) -> List[ProviderConfig]:
        """
        Pick the providers a race will query.

        `accepts` narrows the pool before health and fan-out are applied,
        for queries only some providers can answer.
        """
        if mode == RaceMode.SPECIFIC:
            return [self.registry.get(provider_key)]

        ranked = self.registry.ranked()
        if accepts is not None:
            ranked = [p for p in ranked if accepts(p)]
            if not ranked:
                return []
        eligible = [p for p in ranked if self.health.is_eligible(p.key)]

        if mode == RaceMode.BROADCAST:
            return eligible or ranked

        if not eligible:
            # Everyone is excluded; try the best-ranked provider anyway
            logger.warning("no_eligible_providers", fallback=ranked[0].key)
            return ranked[:1]
        return eligible[: self.settings.race_fanout]

    async def _call(
        self,
        provider: ProviderConfig,
        query: ProviderQuery,
        timeout: float,
        record: bool,
        item_filter: Optional[ItemFilter] = None,
    ) -> RaceResult:
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(self.client.fetch(provider, query), timeout=timeout)
            if item_filter is not None:
                kept = [item for item in response.items if item_filter(item)]
                response = response.model_copy(update={"items": kept, "total": len(kept)})
            if not response.items:
                raise ProviderUnavailable(provider.key, "empty result", empty=True)
        except asyncio.TimeoutError as e:
            if record:
                self.health.record_failure(provider.key)
            raise ProviderUnavailable(provider.key, f"timeout after {timeout}s") from e
        except ProviderUnavailable as e:
            if record:
                self.health.record_failure(provider.key)
            logger.debug("provider_call_failed", provider=provider.key, reason=e.reason)
            raise

        if record:
            self.health.record_success(provider.key)
        return RaceResult(
            provider_key=provider.key,
            provider_name=provider.name,
            response=response,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )

    async def race(
        self,
        query_builder: QueryBuilder,
        mode: RaceMode = RaceMode.DEFAULT,
        provider_key: Optional[str] = None,
        accepts: Optional[ProviderPredicate] = None,
        item_filter: Optional[ItemFilter] = None,
    ) -> RaceResult:
        """
        Run one race.

        Args:
            query_builder: Builds the query for each selected provider
            mode: Provider selection mode
            provider_key: Target for SPECIFIC mode
            accepts: Only providers passing this take part
            item_filter: Items failing this are dropped inside each call,
                so a provider left with nothing counts as empty

        Returns:
            The first non-empty result

        Raises:
            AggregateUnavailable: Every selected provider failed or was empty
            NotFoundError: Unknown provider_key in SPECIFIC mode
        """
        providers = self.select(mode, provider_key, accepts)
        timeout = (
            self.settings.broadcast_timeout_seconds
            if mode == RaceMode.BROADCAST
            else self.settings.provider_timeout_seconds
        )
        record = mode != RaceMode.SPECIFIC

        # Every query is built before any call starts
        queries = [query_builder(p) for p in providers]
        factories = [
            (lambda p=p, q=q: self._call(p, q, timeout, record, item_filter))
            for p, q in zip(providers, queries)
        ]

        try:
            result = await first_success(factories)
        except AllFailedError as e:
            errors: Dict[str, BaseException] = {
                p.key: err for p, err in zip(providers, e.errors)
            }
            logger.warning(
                "race_failed",
                mode=mode.value,
                providers=list(errors),
                reasons=[str(err) for err in errors.values()]
            )
            raise AggregateUnavailable(errors) from e

        logger.debug(
            "race_won",
            mode=mode.value,
            provider=result.provider_key,
            elapsed_ms=result.elapsed_ms,
            items=len(result.response.items)
        )
        return result


# Singleton instance
_racer: Optional[RequestRacer] = None


def get_racer() -> RequestRacer:
    """Get singleton RequestRacer with its own HealthRegistry."""
    global _racer
    if _racer is None:
        _racer = RequestRacer(
            registry=get_provider_registry(),
            health=get_health_registry(),
            client=get_provider_client(),
        )
    return _racer
