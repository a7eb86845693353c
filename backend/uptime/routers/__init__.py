"""API routers."""
from .monitors import router as monitors_router
from .checks import router as checks_router

__all__ = ["monitors_router", "checks_router"]
