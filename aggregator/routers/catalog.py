"""
Catalog API Router

Live catalog reads served from the fastest healthy providers.
"""

from typing import Any, Dict
from fastapi import APIRouter, Query

from ..core.logging import get_logger
from ..services.query_service import get_query_service

logger = get_logger(__name__)

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/list", response_model=Dict[str, Any])
async def list_category(
    category_id: int = Query(..., alias="t", ge=1, description="Logical category id"),
    page: int = Query(1, alias="pg", ge=1, description="Page number"),
):
    """One page of a logical category."""
    return await get_query_service().list_category(category_id, page)


@router.get("/home/{section}", response_model=Dict[str, Any])
async def home_section(section: str):
    """
    Home page section (e.g. `movie_hot`, `anime`).

    Each provider is asked for its own category id for the section.
    """
    return await get_query_service().home_section(section)


@router.get("/detail/{provider_key}/{item_id}", response_model=Dict[str, Any])
async def provider_detail(provider_key: str, item_id: str):
    """Detail of one item on one provider."""
    return await get_query_service().provider_detail(provider_key, item_id)


@router.get("/search", response_model=Dict[str, Any])
async def search_sources(
    q: str = Query(..., min_length=1, description="Title keyword"),
):
    """Search every healthy provider; the first to answer wins."""
    logger.info("catalog_search_request", query=q)
    return await get_query_service().search_sources(q)
