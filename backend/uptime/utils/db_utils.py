"""Database utility functions."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import StoreError

logger = logging.getLogger(__name__)

# Driver messages that indicate the store may recover on its own. Callers
# decide whether to try again; nothing here retries.
TRANSIENT_MESSAGES = [
    "connection refused",
    "connection reset",
    "connection closed",
    "server closed",
    "timeout",
    "too many clients",
    "database is locked",
]


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an incoming timestamp to naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def is_transient(error: Exception) -> bool:
    """Check whether a store error looks like a transient connection problem."""
    error_str = str(error).lower()
    return any(msg in error_str for msg in TRANSIENT_MESSAGES)


@asynccontextmanager
async def atomic(session: AsyncSession, operation: str):
    """Run the block as one transaction and commit it.

    Any failure rolls the whole block back. SQLAlchemy errors are re-raised
    as StoreError; domain errors propagate unchanged.

    Args:
        session: Session whose transaction wraps the block
        operation: Short description used in logs and the error message
    """
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        kind = "transient" if is_transient(e) else "persistent"
        logger.error(f"Store failure during {operation} ({kind}): {e}")
        raise StoreError(f"Store unavailable during {operation}") from e
    except BaseException:
        await session.rollback()
        raise
