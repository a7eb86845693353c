"""Check protocol schemas: claims, results, execution."""
from datetime import datetime
from typing import Optional
from pydantic import Field

from .base import ApiModel


class ClaimRequest(ApiModel):
    """Body of POST /api/checks/claim. The count is clamped server-side."""
    count: int = 1


class ClaimTicketResponse(ApiModel):
    """A claimed (or in-flight) monitor handed to a worker."""
    id: int
    url: str
    label: Optional[str] = None


class ResultReport(ApiModel):
    """Body of POST /api/checks/result."""
    monitor_id: int
    status_code: Optional[int] = None
    error_text: Optional[str] = None
    latency_ms: Optional[float] = Field(None, ge=0)
    checked_at: Optional[datetime] = None


class ExecuteRequest(ApiModel):
    """Body of POST /api/checks/execute."""
    monitor_id: int


class CheckResultResponse(ApiModel):
    """Public fields of a stored check result."""
    id: int
    status_code: Optional[int] = None
    error_text: Optional[str] = None
    latency_ms: Optional[float] = None
    checked_at: datetime
