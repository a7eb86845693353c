"""Domain errors and their HTTP mapping."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class UptimeError(Exception):
    """Base class for errors raised by the stores and check services."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(UptimeError):
    """Input out of shape or bounds."""

    status_code = 400


class ClaimConflict(ValidationError):
    """Claim state does not allow the transition (already claimed, or not claimed)."""

    status_code = 409


class NotFound(UptimeError):
    """Id does not resolve, or resolves to something the caller does not own."""

    status_code = 404


class AccessError(UptimeError):
    """Caller classification is insufficient for the operation."""

    status_code = 403


class Unauthenticated(AccessError):
    """No caller classification could be established."""

    status_code = 401


class StoreError(UptimeError):
    """The durable store failed; nothing from the unit of work was kept."""

    status_code = 503


async def uptime_error_handler(request: Request, exc: UptimeError) -> JSONResponse:
    """Map domain errors to JSON responses."""
    if isinstance(exc, StoreError):
        logger.error(f"{request.method} {request.url.path} - store failure: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} - {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def register_exception_handlers(app: FastAPI):
    """Install the domain error handler on an app."""
    app.add_exception_handler(UptimeError, uptime_error_handler)
