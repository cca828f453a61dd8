"""
路由包初始化
"""

from shiptrack.api.routes.tracking import router as tracking_router
from shiptrack.api.routes.health import router as health_router
from shiptrack.api.routes.metrics import router as metrics_router

__all__ = [
    "tracking_router",
    "health_router",
    "metrics_router",
]
