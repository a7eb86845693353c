"""Uptime tracker: monitored URLs, check claims and results."""

__version__ = "1.0.0"
