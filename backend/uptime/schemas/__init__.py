"""Pydantic schemas for API request/response models."""
from .check import (
    ClaimRequest,
    ClaimTicketResponse,
    ResultReport,
    ExecuteRequest,
    CheckResultResponse,
)
from .monitor import (
    MonitorRequest,
    MonitorResponse,
    ResultsPage,
)

__all__ = [
    "ClaimRequest",
    "ClaimTicketResponse",
    "ResultReport",
    "ExecuteRequest",
    "CheckResultResponse",
    "MonitorRequest",
    "MonitorResponse",
    "ResultsPage",
]
