"""
API 请求/响应模型 - Pydantic Schema 定义

所有 API 的输入输出都通过这些模型定义，
确保类型安全和自动文档生成。
"""

from datetime import datetime
from typing import Optional, List, Dict

from pydantic import BaseModel, Field, field_validator

from shiptrack.domain.models import IdentifierType


# ==================== 请求模型 ====================

class TrackRequest(BaseModel):
    """追踪请求"""
    identifier: str = Field(
        ...,
        max_length=200,
        description="追踪号：集装箱号、订舱号、提单号或船名"
    )
    type: Optional[IdentifierType] = Field(
        default=None,
        description="追踪号类型：container, booking, bol, vessel；不填则自动"
    )
    force_refresh: bool = Field(
        default=False,
        description="跳过缓存强制获取最新数据"
    )

    @field_validator('identifier')
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        # 长度和字符集由追踪服务统一校验，保证错误码一致
        return v.strip()


# ==================== 响应模型 ====================

class TrackingErrorData(BaseModel):
    """错误信息"""
    code: str = Field(..., description="错误码")
    message: str = Field(..., description="内部错误信息")
    user_message: str = Field(..., description="面向用户的提示")
    status_code: int = Field(..., description="对应的 HTTP 状态码")
    retryable: bool = Field(..., description="是否建议重试")
    retry_after: Optional[int] = Field(default=None, description="建议重试间隔（秒）")
    provider: Optional[str] = Field(default=None, description="相关数据源")


class TimelineEventData(BaseModel):
    """时间线事件"""
    id: Optional[str] = None
    timestamp: datetime
    status: str
    location: str
    description: str = ""
    is_completed: bool = False


class ShipmentData(BaseModel):
    """货运记录"""
    identifier: str
    identifier_type: IdentifierType
    carrier: str
    status: str
    service: str
    timeline: List[TimelineEventData] = Field(default_factory=list)
    data_source: str = Field(..., description="主数据源")
    reliability: float = Field(..., ge=0, le=1, description="主数据源可靠性")
    last_updated: datetime
    sources: List[str] = Field(default_factory=list, description="参与合并的所有数据源")


class TrackingResponse(BaseModel):
    """追踪响应"""
    success: bool = Field(..., description="是否拿到数据（包括降级返回的旧数据）")
    data: Optional[ShipmentData] = None
    error: Optional[TrackingErrorData] = Field(default=None, description="失败原因或旧数据警告")
    from_cache: bool = False
    data_age_minutes: Optional[int] = None
    state: str = Field(..., description="解析终止状态")


class HistoryResponse(BaseModel):
    """事件历史响应"""
    success: bool
    data: Optional[List[TimelineEventData]] = None
    error: Optional[TrackingErrorData] = None


class ProviderHealthItem(BaseModel):
    """单个数据源健康信息"""
    name: str
    reliability: float
    available: bool


class ProviderHealthResponse(BaseModel):
    """数据源健康报告"""
    providers: List[ProviderHealthItem]
    overall_health: str = Field(..., description="healthy / degraded / unavailable")


class CandidateItem(BaseModel):
    """候选数据源"""
    name: str
    reliability: float
    cost_tier: str
    is_aggregator: bool
    coverage: List[str]


class CandidatesResponse(BaseModel):
    """按访问顺序排列的候选数据源"""
    identifier_type: Optional[IdentifierType] = None
    candidates: List[CandidateItem]


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: str = Field(..., description="服务状态：healthy, degraded, unhealthy")
    timestamp: datetime = Field(..., description="检查时间")
    version: str = Field(..., description="API 版本")
    components: Dict[str, str] = Field(
        default_factory=dict,
        description="各组件状态"
    )


class ErrorResponse(BaseModel):
    """通用错误响应"""
    success: bool = Field(default=False)
    error_code: str = Field(..., description="错误代码")
    error_message: str = Field(..., description="错误信息")
