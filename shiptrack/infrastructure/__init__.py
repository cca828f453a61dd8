"""
基础设施层 - 横切关注点

包含：
- logging: 结构化日志系统
- metrics: 指标收集系统
- errors: 异常层次和故障分类
- cache: 原始响应缓存和货运记录缓存
- rate_limiter: 数据源限流
- security: 安全中间件和追踪号校验
"""

from shiptrack.infrastructure.logging import (
    setup_logging,
    get_logger,
    StructuredFormatter,
    SimpleFormatter,
)
from shiptrack.infrastructure.metrics import (
    MetricsRegistry,
    Counter,
    Gauge,
    Histogram,
    get_metrics_registry,
    increment_counter,
    record_histogram,
)
from shiptrack.infrastructure.errors import (
    ShipTrackError,
    ValidationError,
    AggregateFailureError,
    FailureClassifier,
    format_data_age,
)
from shiptrack.infrastructure.cache import (
    TTLCache,
    CacheEntry,
    CacheStats,
    ResponseCache,
    ShipmentCache,
    cache_key,
)
from shiptrack.infrastructure.rate_limiter import (
    RateLimitTracker,
    RateLimitWindow,
)
from shiptrack.infrastructure.security import (
    SecurityHeadersMiddleware,
    IdentifierValidator,
)

__all__ = [
    # 日志
    "setup_logging",
    "get_logger",
    "StructuredFormatter",
    "SimpleFormatter",
    # 指标
    "MetricsRegistry",
    "Counter",
    "Gauge",
    "Histogram",
    "get_metrics_registry",
    "increment_counter",
    "record_histogram",
    # 错误
    "ShipTrackError",
    "ValidationError",
    "AggregateFailureError",
    "FailureClassifier",
    "format_data_age",
    # 缓存
    "TTLCache",
    "CacheEntry",
    "CacheStats",
    "ResponseCache",
    "ShipmentCache",
    "cache_key",
    # 限流
    "RateLimitTracker",
    "RateLimitWindow",
    # 安全
    "SecurityHeadersMiddleware",
    "IdentifierValidator",
]
