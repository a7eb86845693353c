"""Owner-facing monitor operations: register, edit, list, delete."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..access import Caller, require_user
from ..config import settings
from ..errors import NotFound
from ..models import CheckResult, Monitor
from ..utils.db_utils import atomic, utcnow
from .monitor_store import MonitorStore, next_due_after
from .result_store import ResultStore

logger = logging.getLogger(__name__)

# Results embedded in monitor responses
DEFAULT_RECENT_RESULTS = 10


class MonitorService:
    """Monitor CRUD on behalf of an owner or administrator.

    Edits never touch ``claimed``; ``next_due_at`` is only seeded when it is
    still unset.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.monitors = MonitorStore(session)
        self.results = ResultStore(session)

    async def create(
        self,
        caller: Caller,
        url: str,
        label: Optional[str],
        frequency: int,
        now: Optional[datetime] = None,
    ) -> Monitor:
        require_user(caller)
        now = now or utcnow()
        if settings.check_new_monitors_immediately:
            next_due_at = None
        else:
            next_due_at = next_due_after(now, frequency)

        async with atomic(self.session, "create monitor"):
            monitor = await self.monitors.create(
                Monitor(
                    owner_id=caller.user_id,
                    url=url,
                    label=label,
                    frequency=frequency,
                    next_due_at=next_due_at,
                ),
                now=now,
            )
        logger.info(f"Monitor created: {monitor.url} (ID: {monitor.id}) for user {monitor.owner_id}")
        return monitor

    async def get(self, caller: Caller, monitor_id: int) -> Monitor:
        require_user(caller)
        async with atomic(self.session, "load monitor"):
            return await self.monitors.get_for_caller(caller, monitor_id)

    async def list_monitors(self, caller: Caller) -> List[Monitor]:
        require_user(caller)
        async with atomic(self.session, "list monitors"):
            monitors = await self.monitors.list_for_caller(caller)
        logger.debug(f"Found {len(monitors)} monitors for user {caller.user_id}")
        return monitors

    async def update(
        self,
        caller: Caller,
        monitor_id: int,
        url: str,
        label: Optional[str],
        frequency: int,
        now: Optional[datetime] = None,
    ) -> Monitor:
        require_user(caller)
        now = now or utcnow()
        async with atomic(self.session, "update monitor"):
            monitor = await self.monitors.get_for_caller(caller, monitor_id)
            monitor.url = url
            monitor.label = label
            monitor.frequency = frequency
            await self.monitors.update(monitor, now=now)
            if monitor.next_due_at is None:
                await self.monitors.seed_next_due(monitor, now=now)
        logger.info(f"Monitor updated: {monitor.url} (ID: {monitor.id})")
        return monitor

    async def delete(self, caller: Caller, monitor_id: int):
        require_user(caller)
        async with atomic(self.session, "delete monitor"):
            monitor = await self.monitors.get_for_caller(caller, monitor_id)
            await self.monitors.delete(monitor.id)
        logger.info(f"Monitor deleted: {monitor_id}")

    async def recent_results(self, monitor_id: int, limit: int = DEFAULT_RECENT_RESULTS) -> List[CheckResult]:
        """Newest results for a monitor the caller has already been allowed to see."""
        async with atomic(self.session, "load recent results"):
            return await self.results.list_for_monitor(monitor_id, limit=limit)

    async def results_page(
        self,
        caller: Caller,
        monitor_id: int,
        since: datetime,
        page: int,
        per_page: int,
    ) -> tuple[List[CheckResult], int]:
        """One page of results since ``since`` plus the total count."""
        require_user(caller)
        async with atomic(self.session, "page results"):
            monitor = await self.monitors.get_for_caller(caller, monitor_id)
            total = await self.results.count_for_monitor(monitor.id, since=since)
            items = await self.results.list_for_monitor(
                monitor.id, limit=per_page, since=since, offset=(page - 1) * per_page
            )
        return items, total

    async def get_result(self, caller: Caller, result_id: int) -> CheckResult:
        """A single result, visible when its monitor is visible to the caller."""
        async with atomic(self.session, "load result"):
            result = await self.results.get(result_id)
            try:
                await self.monitors.get_for_caller(caller, result.monitor_id)
            except NotFound:
                raise NotFound("Check result not found") from None
        return result
