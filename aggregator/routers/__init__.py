"""API Routers."""

from .catalog import router as catalog_router
from .ops import router as ops_router

__all__ = [
    "catalog_router",
    "ops_router",
]
