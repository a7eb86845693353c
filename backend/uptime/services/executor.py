"""Execute-and-record - probe a monitor in-process and record the outcome."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..access import Caller, require_user
from ..models import CheckResult
from ..utils.db_utils import atomic, utcnow
from .checker import CheckerService, CheckOutcome, ProbeResult, checker_service, probe_timeout_for
from .claim_scheduler import ClaimScheduler
from .monitor_store import MonitorStore
from .recorder import ResultRecorder

logger = logging.getLogger(__name__)


async def execute_check(
    session: AsyncSession,
    caller: Caller,
    monitor_id: int,
    checker: Optional[CheckerService] = None,
) -> CheckResult:
    """Claim one monitor, probe it and record the result.

    The claim is committed before the probe starts so workers skip the
    monitor while it runs. Unexpected probe failures are recorded as the
    outcome. If recording fails or the task is cancelled, the claim is
    released with the monitor's previous due time and the error propagates.
    """
    require_user(caller)
    checker = checker or checker_service

    monitor = await ClaimScheduler(session).claim_one(caller, monitor_id)
    # A rollback in record() expires the instance
    claimed_id, previous_due_at = monitor.id, monitor.next_due_at
    timeout = probe_timeout_for(monitor.frequency)
    logger.debug(f"Executing check for monitor {monitor.id}: {monitor.url} (timeout {timeout}s)")

    try:
        try:
            probe = await checker.probe(monitor.url, timeout=timeout)
        except Exception as e:
            logger.error(f"Probe crashed for monitor {monitor.id}: {e}")
            probe = ProbeResult(outcome=CheckOutcome(error_text=str(e) or type(e).__name__))

        return await ResultRecorder(session).record(caller, monitor.id, probe.outcome, probe.checked_at)
    except BaseException:
        await _release_claim(session, claimed_id, previous_due_at)
        raise


async def _release_claim(session: AsyncSession, monitor_id: int, next_due_at: Optional[datetime]):
    """Undo a direct-execution claim without recording a result."""
    try:
        async with atomic(session, "release claim"):
            released = await MonitorStore(session).try_release(monitor_id, next_due_at, utcnow())
    except Exception as e:
        logger.error(f"Could not release claim on monitor {monitor_id}: {e}")
        return
    if released:
        logger.warning(f"Released claim on monitor {monitor_id} after failed execution")
