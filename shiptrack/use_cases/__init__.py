"""
用例层 - 业务逻辑的核心实现

包含：
- TrackShipmentUseCase: 追踪号解析（缓存分层 + 旧数据兜底）
- GetProviderHealthUseCase: 数据源健康汇总
- create_tracking_service: 工厂函数
"""

from shiptrack.use_cases.base import UseCase
from shiptrack.use_cases.track_shipment import TrackShipmentUseCase, create_tracking_service
from shiptrack.use_cases.provider_health import GetProviderHealthUseCase

__all__ = [
    "UseCase",
    "TrackShipmentUseCase",
    "create_tracking_service",
    "GetProviderHealthUseCase",
]
