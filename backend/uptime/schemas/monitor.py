"""Monitor schemas for API."""
from datetime import datetime
from typing import List, Optional
from pydantic import Field

from ..models.monitor import (
    LABEL_MAX_LENGTH,
    MAX_FREQUENCY_MINUTES,
    MIN_FREQUENCY_MINUTES,
    URL_MAX_LENGTH,
)
from .base import ApiModel
from .check import CheckResultResponse


class MonitorRequest(ApiModel):
    """Schema for creating or updating a monitor."""
    url: str = Field(..., min_length=1, max_length=URL_MAX_LENGTH)
    label: Optional[str] = Field(None, max_length=LABEL_MAX_LENGTH)
    frequency: int = Field(..., ge=MIN_FREQUENCY_MINUTES, le=MAX_FREQUENCY_MINUTES)  # minutes


class MonitorResponse(ApiModel):
    """Schema for monitor in API responses."""
    id: int
    owner_id: int
    url: str
    label: Optional[str] = None
    frequency: int
    next_due_at: Optional[datetime] = None
    claimed: bool
    claimed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    recent_results: List[CheckResultResponse] = []


class ResultsPage(ApiModel):
    """Paginated results response."""
    items: List[CheckResultResponse]
    total: int
    page: int
    per_page: int
    total_pages: int
