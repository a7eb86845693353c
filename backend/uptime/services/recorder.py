"""Result Recorder - close a claim by recording its outcome and rescheduling."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..access import Caller
from ..errors import ClaimConflict
from ..models import CheckResult
from ..utils.db_utils import atomic, to_naive_utc, utcnow
from .checker import CheckOutcome
from .monitor_store import MonitorStore, next_due_after
from .result_store import ResultStore

logger = logging.getLogger(__name__)


class ResultRecorder:
    """Insert a check result and release the monitor's claim in one transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.monitors = MonitorStore(session)
        self.results = ResultStore(session)

    async def record(
        self,
        caller: Caller,
        monitor_id: int,
        outcome: CheckOutcome,
        checked_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> CheckResult:
        """Record an outcome for a claimed monitor.

        The next due time is ``min(checked_at, now) + frequency``; a failed
        check (error text, no status code) advances the schedule exactly like
        a success.

        Raises:
            NotFound: Monitor missing or not visible to the caller
            ClaimConflict: Monitor is not currently claimed; nothing is written
            StoreError: Either write failed; both are rolled back
        """
        now = now or utcnow()
        checked_at = to_naive_utc(checked_at) if checked_at else now

        async with atomic(self.session, "record result"):
            monitor = await self.monitors.get_for_caller(caller, monitor_id)

            result = await self.results.add(
                CheckResult(
                    monitor_id=monitor.id,
                    status_code=outcome.status_code,
                    error_text=outcome.error_text,
                    latency_ms=outcome.latency_ms,
                    checked_at=checked_at,
                )
            )

            next_due_at = next_due_after(min(checked_at, now), monitor.frequency)
            if not await self.monitors.try_release(monitor.id, next_due_at, now):
                logger.warning(f"Rejected result for monitor {monitor.id}: not claimed")
                raise ClaimConflict("Monitor has no open claim")

        logger.info(
            f"Check result recorded: monitor {monitor.id} - HTTP {result.status_code} - "
            f"{result.latency_ms}ms - next due {next_due_at.isoformat()}"
        )
        return result
