"""Monitor Store - durable monitor records and the scheduling queries."""
import logging
from datetime import datetime, timedelta
from typing import Collection, List, Optional
from urllib.parse import urlparse

from sqlalchemy import case, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..access import Caller
from ..errors import NotFound, ValidationError
from ..models import CheckResult, Monitor
from ..models.monitor import (
    LABEL_MAX_LENGTH,
    MAX_FREQUENCY_MINUTES,
    MIN_FREQUENCY_MINUTES,
    URL_MAX_LENGTH,
)
from ..utils.db_utils import utcnow

logger = logging.getLogger(__name__)


def normalize_label(label: Optional[str]) -> Optional[str]:
    """Strip a label, turning blank labels into None."""
    if label is None:
        return None
    label = label.strip()
    return label or None


def validate_monitor_fields(url: Optional[str], label: Optional[str], frequency: Optional[int]):
    """Check url/label/frequency bounds, raising ValidationError on the first problem."""
    if not url or not url.strip():
        raise ValidationError("URL is required")
    if len(url) > URL_MAX_LENGTH:
        raise ValidationError(f"URL must be at most {URL_MAX_LENGTH} characters")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("URL must be an absolute http or https URL")
    if label is not None and len(label) > LABEL_MAX_LENGTH:
        raise ValidationError(f"Label must be at most {LABEL_MAX_LENGTH} characters")
    if (
        frequency is None
        or isinstance(frequency, bool)
        or not isinstance(frequency, int)
        or not MIN_FREQUENCY_MINUTES <= frequency <= MAX_FREQUENCY_MINUTES
    ):
        raise ValidationError(
            f"Frequency must be between {MIN_FREQUENCY_MINUTES} and {MAX_FREQUENCY_MINUTES} minutes"
        )


def next_due_after(base: datetime, frequency: int) -> datetime:
    """Next due time for a monitor checked (or created) at ``base``."""
    return base + timedelta(minutes=frequency)


class MonitorStore:
    """CRUD plus due/claimed queries over the monitors table.

    The store works inside the caller's session and never commits; the
    services decide the transaction boundaries.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, monitor: Monitor, now: Optional[datetime] = None) -> Monitor:
        """Insert a new monitor, assigning id and audit timestamps."""
        monitor.label = normalize_label(monitor.label)
        validate_monitor_fields(monitor.url, monitor.label, monitor.frequency)
        now = now or utcnow()
        monitor.claimed = False
        monitor.created_at = now
        monitor.updated_at = now
        self.session.add(monitor)
        await self.session.flush()
        logger.debug(f"Monitor {monitor.id} created for owner {monitor.owner_id}: {monitor.url}")
        return monitor

    async def get(self, monitor_id: int) -> Monitor:
        """Get a monitor by id or raise NotFound."""
        result = await self.session.execute(select(Monitor).where(Monitor.id == monitor_id))
        monitor = result.scalar_one_or_none()
        if not monitor:
            raise NotFound("Monitor not found")
        return monitor

    async def get_owned(self, monitor_id: int, owner_id: int) -> Monitor:
        """Get a monitor owned by ``owner_id``; foreign monitors look missing."""
        result = await self.session.execute(
            select(Monitor).where(Monitor.id == monitor_id, Monitor.owner_id == owner_id)
        )
        monitor = result.scalar_one_or_none()
        if not monitor:
            logger.warning(f"Monitor {monitor_id} not found or not owned by user {owner_id}")
            raise NotFound("Monitor not found")
        return monitor

    async def get_for_caller(self, caller: Caller, monitor_id: int) -> Monitor:
        """Administrators and workers see every monitor, owners only their own."""
        if caller.sees_all_monitors:
            return await self.get(monitor_id)
        return await self.get_owned(monitor_id, caller.user_id)

    async def list_for_caller(self, caller: Caller) -> List[Monitor]:
        if caller.is_admin:
            return await self.list_all()
        return await self.list_by_owner(caller.user_id)

    async def list_by_owner(self, owner_id: int) -> List[Monitor]:
        result = await self.session.execute(
            select(Monitor).where(Monitor.owner_id == owner_id).order_by(Monitor.id)
        )
        return list(result.scalars().all())

    async def list_all(self) -> List[Monitor]:
        """All monitors. Administrator-only; the caller enforces that."""
        result = await self.session.execute(select(Monitor).order_by(Monitor.id))
        return list(result.scalars().all())

    async def find_due(
        self,
        now: datetime,
        limit: int,
        lock: bool = False,
        exclude_ids: Collection[int] = (),
    ) -> List[Monitor]:
        """Unclaimed monitors whose next_due_at is unset or has passed.

        Never-checked monitors come first, then the oldest due time, then id.

        Args:
            now: Reference time for due-ness
            limit: Maximum rows returned
            lock: Lock the selected rows (FOR UPDATE SKIP LOCKED) where the
                database supports row locks, so concurrent claimers pass over
                each other's candidates
            exclude_ids: Ids to leave out (already considered by the caller)
        """
        query = (
            select(Monitor)
            .where(
                Monitor.claimed.is_(False),
                (Monitor.next_due_at.is_(None)) | (Monitor.next_due_at <= now),
            )
            .order_by(
                case((Monitor.next_due_at.is_(None), 0), else_=1),
                Monitor.next_due_at,
                Monitor.id,
            )
            .limit(limit)
        )
        if exclude_ids:
            query = query.where(Monitor.id.not_in(list(exclude_ids)))
        if lock:
            query = query.with_for_update(skip_locked=True)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_claimed(self, limit: Optional[int] = None) -> List[Monitor]:
        """Claimed monitors, oldest claim first, for staleness inspection."""
        query = (
            select(Monitor)
            .where(Monitor.claimed.is_(True))
            .order_by(Monitor.updated_at, Monitor.id)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, monitor: Monitor, now: Optional[datetime] = None) -> Monitor:
        """Persist pending changes to a monitor and bump updated_at."""
        monitor.label = normalize_label(monitor.label)
        validate_monitor_fields(monitor.url, monitor.label, monitor.frequency)
        monitor.updated_at = now or utcnow()
        await self.session.flush()
        return monitor

    async def seed_next_due(self, monitor: Monitor, now: Optional[datetime] = None) -> bool:
        """Set next_due_at = now + frequency, only while it is still NULL.

        Returns:
            True if this call seeded the value
        """
        now = now or utcnow()
        due = next_due_after(now, monitor.frequency)
        result = await self.session.execute(
            update(Monitor)
            .where(Monitor.id == monitor.id, Monitor.next_due_at.is_(None))
            .values(next_due_at=due, updated_at=now)
        )
        if result.rowcount == 1:
            monitor.next_due_at = due
            monitor.updated_at = now
            return True
        return False

    async def try_claim(self, monitor_id: int, now: datetime) -> bool:
        """Atomically flip claimed false -> true.

        Returns:
            True if this caller won the claim
        """
        result = await self.session.execute(
            update(Monitor)
            .where(Monitor.id == monitor_id, Monitor.claimed.is_(False))
            .values(claimed=True, claimed_at=now, updated_at=now)
        )
        return result.rowcount == 1

    async def try_release(self, monitor_id: int, next_due_at: datetime, now: datetime) -> bool:
        """Atomically flip claimed true -> false and reschedule.

        Returns:
            True if the monitor was claimed and is now released
        """
        result = await self.session.execute(
            update(Monitor)
            .where(Monitor.id == monitor_id, Monitor.claimed.is_(True))
            .values(claimed=False, claimed_at=None, next_due_at=next_due_at, updated_at=now)
        )
        return result.rowcount == 1

    async def delete(self, monitor_id: int):
        """Hard-delete a monitor together with its check results."""
        await self.session.execute(delete(CheckResult).where(CheckResult.monitor_id == monitor_id))
        result = await self.session.execute(
            delete(Monitor).where(Monitor.id == monitor_id)
        )
        if result.rowcount == 0:
            raise NotFound("Monitor not found")
        logger.debug(f"Monitor {monitor_id} deleted with its results")
