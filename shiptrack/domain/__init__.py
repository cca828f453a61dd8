"""
领域层 - 核心业务模型

不依赖任何外部服务或框架。
"""

from shiptrack.domain.models import (
    IdentifierType,
    CostTier,
    FetchStatus,
    ErrorCode,
    ResolutionState,
    HealthStatus,
    RateLimit,
    ProviderDescriptor,
    TrackingError,
    RawProviderResult,
    TimelineEvent,
    ShipmentRecord,
    ResolutionResult,
    TrackingHistory,
    ProviderHealth,
    ProviderHealthReport,
    detect_identifier_type,
    utcnow,
)

__all__ = [
    "IdentifierType",
    "CostTier",
    "FetchStatus",
    "ErrorCode",
    "ResolutionState",
    "HealthStatus",
    "RateLimit",
    "ProviderDescriptor",
    "TrackingError",
    "RawProviderResult",
    "TimelineEvent",
    "ShipmentRecord",
    "ResolutionResult",
    "TrackingHistory",
    "ProviderHealth",
    "ProviderHealthReport",
    "detect_identifier_type",
    "utcnow",
]
