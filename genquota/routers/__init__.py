"""Routers package."""

from genquota.routers.billing import router as billing_router
from genquota.routers.generation import router as generation_router
from genquota.routers.health import router as health_router

__all__ = ["billing_router", "generation_router", "health_router"]
