"""
Catalog Aggregator

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .core.logging import setup_logging, get_logger
from .core.exceptions import register_exception_handlers
from .jobs.enrichment import close_enrichment_worker
from .routers import catalog_router, ops_router
from .services.cache_service import get_cache_service
from .services.provider_client import get_provider_client
from .services.provider_registry import get_provider_registry
from .services.scheduler import get_scheduler_service

# Initialize
settings = get_settings()
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(
        "app_startup",
        environment=settings.environment,
        debug=settings.debug
    )

    # Fail fast on a broken providers file
    get_provider_registry()
    await get_cache_service().ping()

    if settings.enable_scheduler:
        get_scheduler_service().start()
        logger.info("scheduler_auto_started")
    else:
        logger.info("scheduler_disabled")

    yield

    if settings.enable_scheduler:
        get_scheduler_service().stop()
    await close_enrichment_worker()
    await get_provider_client().close()
    await get_cache_service().close()

    logger.info("app_shutdown")


# Create FastAPI app
app = FastAPI(
    title="Catalog Aggregator",
    description="Multi-provider video catalog aggregation, de-duplication and enrichment",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(catalog_router)
app.include_router(ops_router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Catalog Aggregator",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if settings.debug else "disabled",
        "scheduler": "enabled" if settings.enable_scheduler else "manual",
    }


@app.get("/health")
async def health():
    """Health check for load balancers."""
    return {"status": "healthy"}
