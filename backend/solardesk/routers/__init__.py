"""API routers."""

from solardesk.routers.health import router as health_router
from solardesk.routers.metrics import router as metrics_router
from solardesk.routers.submissions import router as submissions_router

__all__ = [
    "health_router",
    "metrics_router",
    "submissions_router",
]
