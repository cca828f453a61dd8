"""
shiptrack - 多数据源货运追踪解析

基于 Clean/Hex 六边形架构构建，提供：
- 数据源排序与限流感知的顺序获取
- 原始响应缓存和按年龄分层的货运记录缓存
- 多数据源时间线合并
- 故障分类与旧数据兜底

架构层次：
- domain: 核心领域模型
- ports: 端口接口定义
- adapters: 数据源、存储、时间适配器
- orchestrator: 注册表、排序、获取编排、合并
- use_cases: 追踪解析、数据源健康
- infrastructure: 基础设施（日志、指标、缓存、限流、错误）
- api: FastAPI 路由

快速开始：
```python
from shiptrack.api.dependencies import get_tracking_service

service = get_tracking_service()
result = await service.track("ABCD1234567")
```
"""

__version__ = "1.0.0"
__author__ = "shiptrack Team"

from shiptrack.domain.models import (
    IdentifierType,
    ErrorCode,
    ResolutionState,
    ResolutionResult,
    ShipmentRecord,
    TimelineEvent,
    TrackingError,
)
from shiptrack.use_cases import (
    TrackShipmentUseCase,
    GetProviderHealthUseCase,
    create_tracking_service,
)

__all__ = [
    "__version__",
    "__author__",
    # 领域模型
    "IdentifierType",
    "ErrorCode",
    "ResolutionState",
    "ResolutionResult",
    "ShipmentRecord",
    "TimelineEvent",
    "TrackingError",
    # 用例
    "TrackShipmentUseCase",
    "GetProviderHealthUseCase",
    "create_tracking_service",
]
