"""
核心领域模型 - 追踪解析管道中的实体和值对象

设计原则：
1. 不可变性：使用 frozen=True 确保模型不可变
2. 类型安全：严格类型注解
3. 自描述：每个字段都有明确的含义
4. 可序列化：支持 to_dict() 转换为 JSON 友好结构
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, FrozenSet, Tuple


# ==================== 枚举类型 ====================

class IdentifierType(str, Enum):
    """追踪号类型"""
    CONTAINER = "container"   # 集装箱号
    BOOKING = "booking"       # 订舱号
    BOL = "bol"               # 提单号
    VESSEL = "vessel"         # 船舶


class CostTier(str, Enum):
    """数据源成本等级"""
    FREE = "free"
    FREEMIUM = "freemium"
    PAID = "paid"


class FetchStatus(str, Enum):
    """单个数据源的获取结果状态"""
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class ErrorCode(str, Enum):
    """错误码（封闭集合）"""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    AUTH_ERROR = "AUTH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    # 降级成功标记：伴随旧数据一起返回
    STALE_DATA_WARNING = "STALE_DATA_WARNING"
    VERY_STALE_DATA = "VERY_STALE_DATA"


class ResolutionState(str, Enum):
    """解析请求的状态机节点"""
    VALIDATING = "validating"
    CACHE_LOOKUP = "cache_lookup"
    FRESH_HIT = "fresh_hit"
    STALE_HIT_ATTEMPT_REFRESH = "stale_hit_attempt_refresh"
    REFRESH_SUCCESS = "refresh_success"
    REFRESH_FAILED_RETURN_STALE = "refresh_failed_return_stale"
    MISS_FETCH = "miss_fetch"
    FETCH_SUCCESS = "fetch_success"
    FETCH_FAILED_TRY_VERY_STALE = "fetch_failed_try_very_stale"
    VERY_STALE_HIT = "very_stale_hit"
    NO_DATA = "no_data"


class HealthStatus(str, Enum):
    """数据源整体健康状态"""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


def utcnow() -> datetime:
    """当前 UTC 时间（带时区）"""
    return datetime.now(timezone.utc)


# 标准集装箱号：4 位字母 + 7 位数字（ISO 6346）
CONTAINER_NUMBER_PATTERN = re.compile(r"^[A-Z]{4}\d{7}$")


def detect_identifier_type(identifier: str) -> IdentifierType:
    """
    根据追踪号格式推断类型

    只识别标准集装箱号，其余默认为订舱号。
    """
    if CONTAINER_NUMBER_PATTERN.match(identifier.upper()):
        return IdentifierType.CONTAINER
    return IdentifierType.BOOKING


# ==================== 数据源描述 ====================

@dataclass(frozen=True)
class RateLimit:
    """数据源限流配置"""
    requests_per_minute: int
    requests_per_hour: int


@dataclass(frozen=True)
class ProviderDescriptor:
    """数据源描述（启动时加载，之后只读）"""
    name: str
    base_url: str
    has_credential: bool
    rate_limit: RateLimit
    reliability: float                 # 0.0 - 1.0，静态配置的历史成功率
    timeout: float                     # 单次请求超时（秒）
    retry_attempts: int
    supported_types: FrozenSet[IdentifierType]
    cost_tier: CostTier
    is_aggregator: bool = False        # 是否为聚合商（内部再扇出到多家承运人）
    coverage: Tuple[str, ...] = ("global",)

    def __post_init__(self):
        if not 0.0 <= self.reliability <= 1.0:
            raise ValueError(
                f"数据源 {self.name} 的可靠性必须在 [0, 1] 之间: {self.reliability}"
            )

    def supports(self, identifier_type: Optional[IdentifierType]) -> bool:
        """是否支持指定的追踪号类型（None 表示不限）"""
        return identifier_type is None or identifier_type in self.supported_types


# ==================== 错误 ====================

@dataclass(frozen=True)
class TrackingError:
    """面向调用方的错误描述"""
    code: ErrorCode
    message: str                       # 内部信息
    user_message: str                  # 面向用户的信息
    status_code: int
    retryable: bool
    retry_after: Optional[int] = None  # 建议重试间隔（秒）
    provider: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        data = {
            "code": self.code.value,
            "message": self.message,
            "user_message": self.user_message,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "retry_after": self.retry_after,
        }
        if self.provider:
            data["provider"] = self.provider
        return data


# ==================== 获取结果 ====================

@dataclass(frozen=True)
class RawProviderResult:
    """单个数据源的一次获取结果"""
    provider: str
    identifier: str
    payload: Optional[Dict[str, Any]]
    timestamp: datetime
    reliability: float
    status: FetchStatus
    error: Optional[TrackingError] = None

    @property
    def is_usable(self) -> bool:
        """成功或部分成功的结果可以参与合并"""
        return self.status in (FetchStatus.SUCCESS, FetchStatus.PARTIAL)


@dataclass(frozen=True)
class TimelineEvent:
    """时间线事件"""
    timestamp: datetime
    status: str
    location: str
    description: str = ""
    is_completed: bool = False
    event_id: Optional[str] = None

    @property
    def dedup_key(self) -> Tuple[datetime, str, str]:
        """同一事件的判定键"""
        return (self.timestamp, self.status, self.location)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status,
            "location": self.location,
            "description": self.description,
            "is_completed": self.is_completed,
        }


@dataclass(frozen=True)
class ShipmentRecord:
    """统一的货运记录（合并后的规范输出）"""
    identifier: str
    identifier_type: IdentifierType
    carrier: str
    status: str
    timeline: Tuple[TimelineEvent, ...]
    data_source: str                   # 主数据源名称
    reliability: float                 # 主数据源可靠性
    last_updated: datetime
    service: str = "FCL"
    sources: Tuple[str, ...] = ()      # 所有参与合并的数据源

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于 JSON 序列化）"""
        return {
            "identifier": self.identifier,
            "identifier_type": self.identifier_type.value,
            "carrier": self.carrier,
            "status": self.status,
            "service": self.service,
            "timeline": [event.to_dict() for event in self.timeline],
            "data_source": self.data_source,
            "reliability": self.reliability,
            "last_updated": self.last_updated.isoformat(),
            "sources": list(self.sources),
        }


# ==================== 请求结果 ====================

@dataclass
class ResolutionResult:
    """一次 track() 调用的结果"""
    success: bool
    data: Optional[ShipmentRecord] = None
    error: Optional[TrackingError] = None
    from_cache: bool = False
    data_age_minutes: Optional[int] = None
    state: ResolutionState = ResolutionState.VALIDATING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data.to_dict() if self.data else None,
            "error": self.error.to_dict() if self.error else None,
            "from_cache": self.from_cache,
            "data_age_minutes": self.data_age_minutes,
            "state": self.state.value,
        }


@dataclass(frozen=True)
class TrackingHistory:
    """追踪号的事件历史"""
    success: bool
    events: Tuple[TimelineEvent, ...] = ()
    error: Optional[TrackingError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": [event.to_dict() for event in self.events] if self.success else None,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass(frozen=True)
class ProviderHealth:
    """单个数据源的健康信息"""
    name: str
    reliability: float
    available: bool


@dataclass(frozen=True)
class ProviderHealthReport:
    """数据源健康报告"""
    providers: List[ProviderHealth] = field(default_factory=list)
    overall_health: HealthStatus = HealthStatus.UNAVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "providers": [
                {"name": p.name, "reliability": p.reliability, "available": p.available}
                for p in self.providers
            ],
            "overall_health": self.overall_health.value,
        }
