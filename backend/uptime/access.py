"""Access Gate - classify the caller of a request.

Authentication itself happens upstream: trusted workers present one of the
configured API keys, and users arrive with the identity headers set by the
authentication proxy. The services only ever see the resulting Caller.
"""
import hmac
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Header

from .config import get_worker_api_keys
from .errors import AccessError, Unauthenticated

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


class Role(str, Enum):
    """Caller classifications understood by the check services."""
    OWNER = "owner"
    ADMIN = "admin"
    WORKER = "worker"


@dataclass(frozen=True)
class Caller:
    """Capability passed explicitly into every store-facing operation."""
    role: Role
    user_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_worker(self) -> bool:
        return self.role == Role.WORKER

    @property
    def sees_all_monitors(self) -> bool:
        """Administrators and workers may target any monitor id."""
        return self.role in (Role.ADMIN, Role.WORKER)

    @classmethod
    def owner(cls, user_id: int) -> "Caller":
        return cls(Role.OWNER, user_id)

    @classmethod
    def admin(cls, user_id: Optional[int] = None) -> "Caller":
        return cls(Role.ADMIN, user_id)

    @classmethod
    def worker(cls) -> "Caller":
        return cls(Role.WORKER)


def is_valid_worker_key(provided: Optional[str]) -> bool:
    """Check a presented API key against the configured worker keys."""
    if not provided:
        return False
    return any(hmac.compare_digest(provided, key) for key in get_worker_api_keys())


def require_worker(caller: Caller):
    """Raise AccessError unless the caller is a trusted worker."""
    if not caller.is_worker:
        raise AccessError("Trusted worker credentials required")


def require_user(caller: Caller):
    """Raise AccessError unless the caller is an owner or administrator."""
    if caller.is_worker:
        raise AccessError("Operation not available to workers")


async def get_caller(
    x_api_key: Optional[str] = Header(None),
    x_user_id: Optional[int] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    """FastAPI dependency producing the Caller for the current request."""
    if x_api_key is not None:
        if not get_worker_api_keys():
            raise AccessError("Worker API keys are not configured")
        if not is_valid_worker_key(x_api_key):
            logger.warning("Rejected request with invalid worker API key")
            raise AccessError("Invalid worker API key")
        return Caller.worker()

    if x_user_id is None:
        raise Unauthenticated("Authentication required")

    if (x_user_role or "").lower() == "admin":
        return Caller.admin(x_user_id)
    return Caller.owner(x_user_id)
