"""Check protocol API endpoints: pending claims, claim, result, execute."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..access import Caller, get_caller
from ..database import get_db
from ..schemas.check import (
    ClaimRequest,
    ClaimTicketResponse,
    ResultReport,
    ExecuteRequest,
    CheckResultResponse,
)
from ..services.checker import CheckOutcome
from ..services.claim_scheduler import ClaimScheduler
from ..services.executor import execute_check
from ..services.recorder import ResultRecorder

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/checks", tags=["checks"])


@router.get("/pending", response_model=List[ClaimTicketResponse])
async def list_pending_checks(
    count: Optional[int] = Query(default=None),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """List in-flight claims, oldest first (trusted workers only)."""
    tickets = await ClaimScheduler(db).pending(caller, count)
    logger.info(f"GET /api/checks/pending - Found {len(tickets)} pending checks")
    return [ClaimTicketResponse.model_validate(ticket) for ticket in tickets]


@router.post("/claim", response_model=List[ClaimTicketResponse])
async def claim_checks(
    request: ClaimRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Claim the next due checks (trusted workers only)."""
    tickets = await ClaimScheduler(db).claim_next(caller, request.count)
    logger.info(f"POST /api/checks/claim - Claimed {len(tickets)} checks")
    return [ClaimTicketResponse.model_validate(ticket) for ticket in tickets]


@router.post("/result", response_model=CheckResultResponse)
async def record_result(
    report: ResultReport,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Record the outcome of a claimed check and release the claim."""
    outcome = CheckOutcome(
        status_code=report.status_code,
        error_text=report.error_text,
        latency_ms=report.latency_ms,
    )
    result = await ResultRecorder(db).record(caller, report.monitor_id, outcome, report.checked_at)
    logger.info(f"POST /api/checks/result - Result recorded for monitor {report.monitor_id} - HTTP {result.status_code}")
    return CheckResultResponse.model_validate(result)


@router.post("/execute", response_model=CheckResultResponse)
async def execute(
    request: ExecuteRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Probe a monitor now and record the result (owners and administrators)."""
    result = await execute_check(db, caller, request.monitor_id)
    logger.info(f"POST /api/checks/execute - Check executed for monitor {request.monitor_id} - HTTP {result.status_code}")
    return CheckResultResponse.model_validate(result)
