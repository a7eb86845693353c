"""Claim Scheduler - hand out exclusive claims on due monitors.

A claim is the transition ``claimed: false -> true`` on a monitor row. The
transition is a conditional UPDATE (compare-and-set), so of any number of
callers racing for one monitor exactly one sees its update match a row. The
whole batch runs in a single transaction: a store failure part way through
rolls back every claim made so far.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from ..access import Caller, require_worker
from ..errors import ClaimConflict
from ..models import Monitor
from ..utils.db_utils import atomic, utcnow
from .monitor_store import MonitorStore

logger = logging.getLogger(__name__)

MAX_CLAIM_BATCH = 50


def clamp_count(count: Optional[int]) -> int:
    """Clamp a requested batch size to 1..MAX_CLAIM_BATCH (None means 1)."""
    if count is None:
        return 1
    return min(max(count, 1), MAX_CLAIM_BATCH)


@dataclass(frozen=True)
class ClaimTicket:
    """What a claimer needs to run the check."""
    id: int
    url: str
    label: Optional[str] = None

    @classmethod
    def for_monitor(cls, monitor: Monitor) -> "ClaimTicket":
        return cls(id=monitor.id, url=monitor.url, label=monitor.label)


class ClaimScheduler:
    """Select due monitors and move them into the claimed state."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.monitors = MonitorStore(session)

    async def claim_next(self, caller: Caller, limit: Optional[int], now: Optional[datetime] = None) -> List[ClaimTicket]:
        """Claim up to ``limit`` due monitors in find_due order.

        Candidates lost to a concurrent claimer are skipped and the due query
        is repeated for the free slots, so the batch is only short when fewer
        monitors are due.

        Returns:
            Tickets in claim order; empty when nothing is due
        """
        require_worker(caller)
        limit = clamp_count(limit)
        now = now or utcnow()
        tickets: List[ClaimTicket] = []
        seen: Set[int] = set()

        async with atomic(self.session, "claim batch"):
            while len(tickets) < limit:
                candidates = await self.monitors.find_due(
                    now, limit - len(tickets), lock=True, exclude_ids=seen
                )
                if not candidates:
                    break
                for monitor in candidates:
                    seen.add(monitor.id)
                    if await self.monitors.try_claim(monitor.id, now):
                        tickets.append(ClaimTicket.for_monitor(monitor))
                    else:
                        logger.debug(f"Monitor {monitor.id} claimed by another worker, skipping")

        if tickets:
            logger.info(f"Claimed {len(tickets)} checks: {[t.id for t in tickets]}")
        else:
            logger.debug("No checks due")
        return tickets

    async def claim_one(self, caller: Caller, monitor_id: int, now: Optional[datetime] = None) -> Monitor:
        """Claim one specific monitor, due or not.

        Owners may only claim their own monitors.

        Raises:
            NotFound: Monitor missing or not visible to the caller
            ClaimConflict: Monitor is already claimed
        """
        now = now or utcnow()
        async with atomic(self.session, "claim monitor"):
            monitor = await self.monitors.get_for_caller(caller, monitor_id)
            if not await self.monitors.try_claim(monitor.id, now):
                raise ClaimConflict("Monitor is already being checked")
        logger.info(f"Claimed monitor {monitor.id} for direct execution")
        return monitor

    async def pending(self, caller: Caller, count: Optional[int] = None) -> List[ClaimTicket]:
        """Monitors currently claimed, oldest claim first.

        ``count`` is clamped to 1..MAX_CLAIM_BATCH; None returns all of them.
        """
        require_worker(caller)
        limit = clamp_count(count) if count is not None else None
        async with atomic(self.session, "list claimed monitors"):
            claimed = await self.monitors.find_claimed(limit)
        return [ClaimTicket.for_monitor(monitor) for monitor in claimed]
