"""Worker client service - worker mode: claim checks over HTTP, probe, report."""
import asyncio
import logging
from typing import Optional

import httpx

from ..access import API_KEY_HEADER
from ..config import settings
from .checker import CheckerService, ProbeResult, checker_service

logger = logging.getLogger(__name__)


class WorkerClientService:
    """Polls the server's claim endpoint and reports a result for every ticket.

    Failed posts are logged and not retried; the claim then stays visible
    through GET /api/checks/pending.
    """

    def __init__(
        self,
        checker: Optional[CheckerService] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.checker = checker or checker_service
        self._transport = transport
        self._running = False

    @property
    def headers(self) -> dict:
        if not settings.worker_api_key:
            raise ValueError("WORKER_API_KEY not configured")
        return {API_KEY_HEADER: settings.worker_api_key}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=settings.server_url.rstrip("/"),
            headers=self.headers,
            timeout=30,
            transport=self._transport,
        )

    async def claim(self, client: httpx.AsyncClient) -> list:
        """Claim the next batch of checks."""
        response = await client.post("/api/checks/claim", json={"count": settings.worker_batch_size})
        if response.status_code != 200:
            logger.error(f"Claim failed: {response.status_code} - {response.text}")
            return []
        return response.json()

    async def report(self, client: httpx.AsyncClient, ticket_id: int, probe: ProbeResult) -> bool:
        """Post one probe result for a claimed monitor."""
        outcome = probe.outcome
        response = await client.post(
            "/api/checks/result",
            json={
                "monitorId": ticket_id,
                "statusCode": outcome.status_code,
                "errorText": outcome.error_text,
                "latencyMs": outcome.latency_ms,
                "checkedAt": probe.checked_at.isoformat(),
            },
        )
        if response.status_code != 200:
            logger.error(f"Failed to post result for #{ticket_id}: {response.status_code} - {response.text}")
            return False
        return True

    async def run_once(self) -> int:
        """One claim/probe/report cycle.

        Returns:
            Number of results successfully reported
        """
        reported = 0
        async with self._client() as client:
            tickets = await self.claim(client)
            logger.info(f"Received {len(tickets)} job{'' if len(tickets) == 1 else 's'}")

            for ticket in tickets:
                if not isinstance(ticket, dict) or "id" not in ticket or "url" not in ticket:
                    logger.warning(f"Skipping malformed ticket: {ticket}")
                    continue

                ticket_id = int(ticket["id"])
                logger.debug(f"Checking #{ticket_id} {ticket['url']}")
                probe = await self.checker.probe(ticket["url"], timeout=settings.probe_timeout_seconds)

                try:
                    if await self.report(client, ticket_id, probe):
                        reported += 1
                except httpx.HTTPError as e:
                    logger.error(f"Failed to post result for #{ticket_id}: {e}")
        return reported

    async def run(self):
        """Main worker loop."""
        self._running = True
        logger.info(f"Starting worker client against {settings.server_url}")

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Worker loop error: {e}")
            await asyncio.sleep(settings.worker_poll_seconds)

    def stop(self):
        """Stop the worker client."""
        self._running = False
        logger.info("Worker client stopped")


# Global instance
worker_client = WorkerClientService()
