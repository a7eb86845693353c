"""Monitor CRUD API endpoints."""
import logging
from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..access import Caller, get_caller
from ..database import get_db
from ..models import Monitor
from ..schemas.check import CheckResultResponse
from ..schemas.monitor import MonitorRequest, MonitorResponse, ResultsPage
from ..services.monitor_service import MonitorService
from ..utils.db_utils import utcnow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["monitors"])


async def _to_response(service: MonitorService, monitor: Monitor) -> MonitorResponse:
    """Build a monitor response with its most recent results."""
    recent = await service.recent_results(monitor.id)
    return MonitorResponse(
        id=monitor.id,
        owner_id=monitor.owner_id,
        url=monitor.url,
        label=monitor.label,
        frequency=monitor.frequency,
        next_due_at=monitor.next_due_at,
        claimed=monitor.claimed,
        claimed_at=monitor.claimed_at,
        created_at=monitor.created_at,
        updated_at=monitor.updated_at,
        recent_results=[CheckResultResponse.model_validate(r) for r in recent],
    )


@router.get("/monitors", response_model=List[MonitorResponse])
async def list_monitors(caller: Caller = Depends(get_caller), db: AsyncSession = Depends(get_db)):
    """List the caller's monitors (all monitors for administrators)."""
    service = MonitorService(db)
    monitors = await service.list_monitors(caller)
    return [await _to_response(service, monitor) for monitor in monitors]


@router.post("/monitors", response_model=MonitorResponse, status_code=201)
async def create_monitor(
    request: MonitorRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Create a new monitor owned by the caller."""
    service = MonitorService(db)
    monitor = await service.create(caller, request.url, request.label, request.frequency)
    return await _to_response(service, monitor)


@router.get("/monitors/{monitor_id}", response_model=MonitorResponse)
async def get_monitor(monitor_id: int, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(get_db)):
    """Get a specific monitor by ID."""
    service = MonitorService(db)
    monitor = await service.get(caller, monitor_id)
    return await _to_response(service, monitor)


@router.put("/monitors/{monitor_id}", response_model=MonitorResponse)
async def update_monitor(
    monitor_id: int,
    request: MonitorRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Update a monitor's URL, label and frequency."""
    service = MonitorService(db)
    monitor = await service.update(caller, monitor_id, request.url, request.label, request.frequency)
    return await _to_response(service, monitor)


@router.delete("/monitors/{monitor_id}", status_code=204)
async def delete_monitor(monitor_id: int, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(get_db)):
    """Delete a monitor and all of its results."""
    await MonitorService(db).delete(caller, monitor_id)


@router.get("/monitors/{monitor_id}/results", response_model=ResultsPage)
async def get_monitor_results(
    monitor_id: int,
    hours: int = Query(default=24, ge=1, le=8760),  # Max 1 year
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=25, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Get paginated check results for a monitor, newest first."""
    since = utcnow() - timedelta(hours=hours)
    items, total = await MonitorService(db).results_page(caller, monitor_id, since, page, per_page)
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    return ResultsPage(
        items=[CheckResultResponse.model_validate(r) for r in items],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=total_pages,
    )


@router.get("/results/{result_id}", response_model=CheckResultResponse)
async def get_result(result_id: int, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(get_db)):
    """Get a single check result."""
    result = await MonitorService(db).get_result(caller, result_id)
    return CheckResultResponse.model_validate(result)
