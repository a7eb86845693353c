"""Database models."""
from .monitor import Monitor
from .check_result import CheckResult

__all__ = ["Monitor", "CheckResult"]
