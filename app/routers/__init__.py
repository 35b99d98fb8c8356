"""Routers package - API endpoint routers."""

from .health import router as health_router
from .assessments import router as assessments_router
from .causes import router as causes_router
from .actions import router as actions_router
from .snapshots import router as snapshots_router

__all__ = [
    "health_router",
    "assessments_router",
    "causes_router",
    "actions_router",
    "snapshots_router",
]
