"""
Ops API Router

Admin endpoints for provider health, scheduler status, manual job triggers
and operator-designated reconciliation. Protected by the X-API-Key header.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from ..config import get_settings
from ..core.logging import get_logger
from ..services.merge_engine import get_merge_engine
from ..services.racer import get_racer
from ..services.scheduler import get_scheduler_service

logger = get_logger(__name__)

router = APIRouter(prefix="/ops", tags=["ops"])


class ReconcileRequest(BaseModel):
    entry_id: str = Field(..., alias="entryId")
    other_id: str = Field(..., alias="otherId")
    master_id: Optional[str] = Field(None, alias="masterId")

    model_config = ConfigDict(populate_by_name=True)


async def verify_admin_access(x_api_key: Optional[str] = Header(None)):
    """Accept only the configured admin key; no key configured means no access."""
    admin_key = get_settings().admin_api_key
    if admin_key and x_api_key == admin_key:
        return {"method": "api_key"}

    raise HTTPException(
        status_code=401,
        detail="Missing or invalid X-API-Key header."
    )


@router.get("/providers")
async def list_providers(admin: dict = Depends(verify_admin_access)):
    """Providers in priority order with their circuit-breaker state."""
    racer = get_racer()
    health = racer.health.snapshot()
    return {
        "providers": [
            {
                "key": p.key,
                "name": p.name,
                "priority": p.priority,
                "health": health.get(p.key, {"state": "healthy", "consecutive_failures": 0, "eligible": True}),
            }
            for p in racer.registry.ranked()
        ]
    }


@router.get("/scheduler")
async def get_scheduler_status(admin: dict = Depends(verify_admin_access)):
    """Scheduler state and next run times."""
    return get_scheduler_service().get_job_status()


@router.post("/trigger/sync")
async def trigger_sync(
    hours: Optional[int] = Query(None, ge=1, le=720),
    admin: dict = Depends(verify_admin_access),
):
    """Run an incremental sync now and return its report."""
    logger.info("manual_sync_trigger", hours=hours)
    report = await get_scheduler_service().trigger_sync_now(hours)
    return {
        "success": report is not None,
        "report": report.model_dump() if report else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/trigger/enrichment")
async def trigger_enrichment(
    full_scan: bool = Query(False, alias="fullScan"),
    admin: dict = Depends(verify_admin_access),
):
    """Run enrichment now. `fullScan` keeps batching until nothing is left."""
    logger.info("manual_enrichment_trigger", full_scan=full_scan)
    report = await get_scheduler_service().trigger_enrichment_now(full_scan=full_scan)
    return {
        "success": report is not None,
        "report": report.model_dump() if report else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/reconcile")
async def reconcile_entries(
    request: ReconcileRequest,
    admin: dict = Depends(verify_admin_access),
):
    """Merge two canonical entries; the survivor absorbs the other's sources."""
    survivor = await get_merge_engine().reconcile(
        request.entry_id, request.other_id, master_id=request.master_id
    )
    return {
        "success": True,
        "entry": survivor.model_dump(by_alias=True, mode="json"),
    }
