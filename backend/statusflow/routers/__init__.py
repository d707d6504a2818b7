"""API routers."""
from .monitors import router as monitors_router
from .alerts import router as alerts_router

__all__ = ["monitors_router", "alerts_router"]
