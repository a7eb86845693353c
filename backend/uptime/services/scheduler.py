"""Scheduler service - in-process jobs for server mode.

Two jobs:
- run_checks (only with EMBEDDED_WORKER): claim a batch through the Claim
  Scheduler as a trusted worker, probe concurrently, record every outcome.
  It goes through exactly the same claim protocol as external workers, so
  both can run against one database.
- report_stale_claims: log claims taken more than STALE_CLAIM_MINUTES ago,
  measured from claimed_at. Stale claims are only reported; releasing them
  is left to an operator.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..access import Caller
from ..config import settings
from ..database import async_session
from ..models import Monitor
from ..utils.db_utils import atomic, utcnow
from .checker import CheckerService, checker_service
from .claim_scheduler import ClaimScheduler, ClaimTicket
from .monitor_store import MonitorStore
from .recorder import ResultRecorder

logger = logging.getLogger(__name__)

# Maximum concurrent in-process probes
MAX_CONCURRENT_CHECKS = 10


class SchedulerService:
    """Service for the embedded worker and the stale-claim watchdog."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        checker: Optional[CheckerService] = None,
    ):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.session_factory = session_factory or async_session
        self.checker = checker or checker_service
        self._running = False
        self._caller = Caller.worker()

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()

        if settings.embedded_worker:
            self.scheduler.add_job(
                self.run_checks,
                trigger=IntervalTrigger(seconds=settings.worker_poll_seconds),
                id="run_checks",
                replace_existing=True,
                max_instances=1,
                misfire_grace_time=settings.worker_poll_seconds,
            )

        self.scheduler.add_job(
            self.report_stale_claims,
            trigger=IntervalTrigger(minutes=settings.stale_claim_check_minutes),
            id="report_stale_claims",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._running = True
        logger.info(
            f"Scheduler started (embedded_worker={settings.embedded_worker}, "
            f"poll={settings.worker_poll_seconds}s, max_concurrent={MAX_CONCURRENT_CHECKS})"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def run_checks(self) -> int:
        """Claim one batch and check it.

        Returns:
            Number of results recorded
        """
        try:
            async with self.session_factory() as session:
                tickets = await ClaimScheduler(session).claim_next(self._caller, settings.worker_batch_size)
        except Exception as e:
            logger.error(f"Error claiming checks: {e}")
            return 0

        if not tickets:
            return 0

        semaphore = asyncio.Semaphore(MAX_CONCURRENT_CHECKS)

        async def check_with_limit(ticket: ClaimTicket) -> bool:
            async with semaphore:
                return await self._check_ticket(ticket)

        recorded = await asyncio.gather(*[check_with_limit(ticket) for ticket in tickets])
        return sum(1 for ok in recorded if ok)

    async def _check_ticket(self, ticket: ClaimTicket) -> bool:
        """Probe one claimed monitor and record the outcome in its own session."""
        probe = await self.checker.probe(ticket.url, timeout=settings.probe_timeout_seconds)
        try:
            async with self.session_factory() as session:
                await ResultRecorder(session).record(self._caller, ticket.id, probe.outcome, probe.checked_at)
            return True
        except Exception as e:
            # The claim stays held; report_stale_claims will surface it
            logger.error(f"Error recording result for monitor {ticket.id}: {e}")
            return False

    async def report_stale_claims(self) -> List[Monitor]:
        """Log claims that have been held longer than STALE_CLAIM_MINUTES."""
        cutoff = utcnow() - timedelta(minutes=settings.stale_claim_minutes)
        try:
            async with self.session_factory() as session:
                async with atomic(session, "find claimed monitors"):
                    claimed = await MonitorStore(session).find_claimed()
        except Exception as e:
            logger.error(f"Error inspecting claims: {e}")
            return []

        stale = [monitor for monitor in claimed if _claimed_since(monitor) <= cutoff]
        if stale:
            logger.warning(
                f"{len(stale)} claim(s) held longer than {settings.stale_claim_minutes} minutes: "
                + ", ".join(f"#{m.id} since {_claimed_since(m).isoformat()}" for m in stale)
            )
        return stale


def _claimed_since(monitor: Monitor) -> datetime:
    """When the current claim was taken."""
    return monitor.claimed_at or monitor.updated_at


# Global instance
scheduler_service = SchedulerService()
