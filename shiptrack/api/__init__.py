"""
API 层 - FastAPI 路由定义

包含：
- /api/v1/tracking: 追踪号查询、刷新、事件历史
- /health, /health/providers: 健康检查
- /ready, /live: Kubernetes 探针
- /metrics: 运行指标
"""

from shiptrack.api.main import app, create_app
from shiptrack.api.schemas import (
    TrackRequest,
    TrackingResponse,
    HistoryResponse,
    ProviderHealthResponse,
    HealthResponse,
    ErrorResponse,
)
from shiptrack.api.dependencies import (
    get_tracking_service,
    get_settings,
    ServiceContainer,
)

__all__ = [
    "app",
    "create_app",
    "TrackRequest",
    "TrackingResponse",
    "HistoryResponse",
    "ProviderHealthResponse",
    "HealthResponse",
    "ErrorResponse",
    "get_tracking_service",
    "get_settings",
    "ServiceContainer",
]
