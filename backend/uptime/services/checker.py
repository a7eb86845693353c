"""Checker service - performs the HTTP GET probe for a monitored URL."""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx

from ..config import settings
from ..utils.db_utils import utcnow

logger = logging.getLogger(__name__)

USER_AGENT = "UptimeCheckerAgent/1.0"


@dataclass
class CheckOutcome:
    """What a check observed. Either side of the request may be missing."""
    status_code: Optional[int] = None
    error_text: Optional[str] = None
    latency_ms: Optional[float] = None


@dataclass
class ProbeResult:
    """Outcome of one probe plus the time it finished."""
    outcome: CheckOutcome
    checked_at: datetime = field(default_factory=utcnow)


def probe_timeout_for(frequency_minutes: int) -> float:
    """Probe timeout for a monitor, kept strictly below its frequency."""
    return min(settings.probe_timeout_seconds, frequency_minutes * 60 - 1)


class CheckerService:
    """Service for performing HTTP checks."""

    def __init__(self, timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    async def probe(self, url: str, timeout: Optional[float] = None) -> ProbeResult:
        """GET the URL and capture status code, latency and any transport error.

        Failures never raise: a request that could not complete yields an
        outcome with ``error_text`` set and ``status_code`` None.
        """
        timeout = timeout or self.timeout
        status_code = None
        error = None

        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            ) as client:
                response = await client.get(url)
            status_code = response.status_code
            logger.debug(f"Probe completed: {url} - HTTP {status_code}")
        except httpx.TimeoutException:
            error = f"Request timed out after {timeout:g}s"
        except httpx.ConnectError as e:
            error = f"Connection error: {e}"
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            error = str(e) or type(e).__name__

        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        if error:
            logger.warning(f"Probe failed: {url} - {error}")

        return ProbeResult(
            outcome=CheckOutcome(status_code=status_code, error_text=error, latency_ms=latency_ms),
            checked_at=utcnow(),
        )


# Global instance
checker_service = CheckerService(timeout=settings.probe_timeout_seconds)
