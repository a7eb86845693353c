"""Result Store - append-only log of check outcomes."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFound
from ..models import CheckResult


class ResultStore:
    """Insert and read check results. There is deliberately no update."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, result: CheckResult) -> CheckResult:
        """Insert a result row and assign its id."""
        self.session.add(result)
        await self.session.flush()
        return result

    async def get(self, result_id: int) -> CheckResult:
        result = await self.session.execute(select(CheckResult).where(CheckResult.id == result_id))
        check_result = result.scalar_one_or_none()
        if not check_result:
            raise NotFound("Check result not found")
        return check_result

    async def list_for_monitor(
        self,
        monitor_id: int,
        limit: Optional[int] = None,
        since: Optional[datetime] = None,
        offset: int = 0,
    ) -> List[CheckResult]:
        """Results for a monitor, newest first."""
        query = (
            select(CheckResult)
            .where(CheckResult.monitor_id == monitor_id)
            .order_by(CheckResult.checked_at.desc(), CheckResult.id.desc())
        )
        if since is not None:
            query = query.where(CheckResult.checked_at >= since)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_for_monitor(self, monitor_id: int, since: Optional[datetime] = None) -> int:
        query = select(func.count(CheckResult.id)).where(CheckResult.monitor_id == monitor_id)
        if since is not None:
            query = query.where(CheckResult.checked_at >= since)
        result = await self.session.execute(query)
        return result.scalar() or 0
