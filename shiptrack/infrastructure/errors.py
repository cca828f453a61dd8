"""
错误处理 - 统一错误定义和故障分类

提供：
- 业务异常类层次
- 故障分类器：把底层异常映射到封闭的错误码集合
- 聚合失败判定：所有数据源都失败时是否值得重试
- 降级结果的警告构造
"""

import asyncio
import math
import socket
from typing import Optional, Dict, Any, Iterable, List

import httpx

from shiptrack.domain.models import ErrorCode, TrackingError
from shiptrack.infrastructure.logging import get_logger
from shiptrack.ports.interfaces import (
    ProviderTimeoutError,
    ProviderConnectionError,
    InvalidPayloadError,
)


logger = get_logger(__name__)


# ==================== 异常类层次 ====================

class ShipTrackError(Exception):
    """shiptrack 基础异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ShipTrackError):
    """追踪号校验失败"""

    def __init__(self, message: str, user_message: str, field: str = "identifier"):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details={"field": field},
        )
        self.user_message = user_message


class AggregateFailureError(ShipTrackError):
    """所有数据源都未能返回可用数据"""

    def __init__(
        self,
        tracking_error: TrackingError,
        provider_errors: Optional[List[TrackingError]] = None,
    ):
        self.tracking_error = tracking_error
        self.provider_errors = list(provider_errors or [])
        super().__init__(
            message=tracking_error.message,
            error_code=tracking_error.code,
            details={
                "providers": [
                    {"provider": e.provider, "code": e.code.value}
                    for e in self.provider_errors
                ],
            },
        )


# ==================== 故障分类 ====================

TIMEOUT_PHRASES = ("timeout", "timed out", "etimedout", "econnaborted")
RATE_LIMIT_PHRASES = ("rate limit", "too many requests", "quota exceeded")
NOT_FOUND_PHRASES = ("not found", "no tracking information", "unknown tracking number")
NETWORK_PHRASES = (
    "enotfound",
    "econnrefused",
    "connection refused",
    "name or service not known",
    "temporary failure in name resolution",
    "getaddrinfo failed",
)

# 各类错误的默认建议重试间隔（秒）
TIMEOUT_RETRY_AFTER = 30
RATE_LIMIT_RETRY_AFTER = 60
NETWORK_RETRY_AFTER = 60
CONSERVATIVE_RETRY_AFTER = 300
STALE_DATA_RETRY_AFTER = 300
VERY_STALE_DATA_RETRY_AFTER = 600


def _extract_status_code(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _contains_any(text: str, phrases: Iterable[str]) -> bool:
    return any(phrase in text for phrase in phrases)


def format_data_age(age_minutes: int) -> str:
    """把数据年龄格式化为用户可读的文字"""
    if age_minutes < 1:
        return "刚刚"
    if age_minutes < 60:
        return f"{age_minutes} 分钟前"
    if age_minutes < 1440:
        return f"{age_minutes // 60} 小时前"
    return f"{age_minutes // 1440} 天前"


class FailureClassifier:
    """
    故障分类器

    按固定优先级把任意底层异常归入封闭的错误码集合：
    超时 → 限流 → 鉴权 → 未找到 → 网络 → 响应无效 / 未知。
    """

    def classify(
        self,
        error: BaseException,
        provider: Optional[str] = None,
    ) -> TrackingError:
        """
        将异常转换为 TrackingError

        Args:
            error: 原始异常
            provider: 产生异常的数据源（可选）

        Returns:
            TrackingError: 标准化的错误
        """
        message = str(error) or type(error).__name__
        lowered = message.lower()
        status_code = _extract_status_code(error)

        if (
            isinstance(error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException, ProviderTimeoutError))
            or _contains_any(lowered, TIMEOUT_PHRASES)
        ):
            return TrackingError(
                code=ErrorCode.TIMEOUT,
                message=message,
                user_message="追踪服务响应超时，请稍后重试。",
                status_code=408,
                retryable=True,
                retry_after=TIMEOUT_RETRY_AFTER,
                provider=provider,
            )

        if status_code == 429 or _contains_any(lowered, RATE_LIMIT_PHRASES):
            return self.rate_limited(provider, message, getattr(error, "retry_after", None))

        if status_code in (401, 403):
            return TrackingError(
                code=ErrorCode.AUTH_ERROR,
                message=message,
                user_message="追踪服务鉴权失败，请联系管理员。",
                status_code=502,
                retryable=False,
                provider=provider,
            )

        if status_code == 404 or _contains_any(lowered, NOT_FOUND_PHRASES):
            return TrackingError(
                code=ErrorCode.NOT_FOUND,
                message=message,
                user_message="未找到该追踪号的信息，请核对后重试。",
                status_code=404,
                retryable=False,
                provider=provider,
            )

        if (
            isinstance(error, (httpx.ConnectError, ProviderConnectionError, ConnectionError, socket.gaierror))
            or _contains_any(lowered, NETWORK_PHRASES)
        ):
            return TrackingError(
                code=ErrorCode.NETWORK_ERROR,
                message=message,
                user_message="无法连接追踪服务，请检查网络后重试。",
                status_code=503,
                retryable=True,
                retry_after=NETWORK_RETRY_AFTER,
                provider=provider,
            )

        if (
            isinstance(error, (InvalidPayloadError, httpx.DecodingError, ValueError, KeyError, TypeError))
            or status_code is not None
        ):
            return TrackingError(
                code=ErrorCode.INVALID_RESPONSE,
                message=message,
                user_message="追踪服务返回了无法识别的数据，请稍后重试。",
                status_code=502,
                retryable=True,
                retry_after=CONSERVATIVE_RETRY_AFTER,
                provider=provider,
            )

        return TrackingError(
            code=ErrorCode.UNKNOWN_ERROR,
            message=message,
            user_message="发生未知错误，请稍后重试。",
            status_code=500,
            retryable=True,
            retry_after=CONSERVATIVE_RETRY_AFTER,
            provider=provider,
        )

    def rate_limited(
        self,
        provider: Optional[str] = None,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
    ) -> TrackingError:
        """构造限流错误，重试间隔不少于 60 秒"""
        wait = RATE_LIMIT_RETRY_AFTER
        if retry_after:
            wait = max(wait, int(math.ceil(retry_after)))
        return TrackingError(
            code=ErrorCode.RATE_LIMIT,
            message=message,
            user_message="请求过于频繁，请稍候再试。",
            status_code=429,
            retryable=True,
            retry_after=wait,
            provider=provider,
        )

    def aggregate(self, errors: List[TrackingError]) -> TrackingError:
        """
        所有数据源都失败时的整体判定

        只要有限流或网络错误，就认为是暂时不可用（可重试）；
        否则认为追踪号本身查不到（不建议盲目重试）。
        """
        codes = {e.code for e in errors}
        summary = ", ".join(f"{e.provider}:{e.code.value}" for e in errors) or "no providers attempted"

        if ErrorCode.RATE_LIMIT in codes or ErrorCode.NETWORK_ERROR in codes:
            code = ErrorCode.RATE_LIMIT if ErrorCode.RATE_LIMIT in codes else ErrorCode.NETWORK_ERROR
            return TrackingError(
                code=code,
                message=f"Tracking services are temporarily unavailable ({summary})",
                user_message="追踪服务暂时不可用，请几分钟后重试。",
                status_code=503,
                retryable=True,
                retry_after=CONSERVATIVE_RETRY_AFTER,
            )

        return TrackingError(
            code=ErrorCode.NOT_FOUND,
            message=f"Unable to find tracking information ({summary})",
            user_message="未能找到该追踪号的信息，请核对追踪号后重试。",
            status_code=404,
            retryable=False,
        )

    def validation_error(self, message: str, user_message: str) -> TrackingError:
        return TrackingError(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            user_message=user_message,
            status_code=400,
            retryable=False,
        )

    def stale_data_warning(self, age_minutes: int) -> TrackingError:
        """缓存数据已过期但刷新失败时附带的警告"""
        return TrackingError(
            code=ErrorCode.STALE_DATA_WARNING,
            message="Using cached data due to provider unavailability",
            user_message=f"当前显示的是 {format_data_age(age_minutes)} 的缓存数据，实时数据暂时不可用。",
            status_code=200,
            retryable=True,
            retry_after=STALE_DATA_RETRY_AFTER,
        )

    def very_stale_data(self, age_minutes: int) -> TrackingError:
        """只剩非常旧的缓存数据时附带的警告"""
        return TrackingError(
            code=ErrorCode.VERY_STALE_DATA,
            message="Using very old cached data",
            user_message=f"当前显示的是 {format_data_age(age_minutes)} 的缓存数据，最新追踪信息不可用。",
            status_code=200,
            retryable=True,
            retry_after=VERY_STALE_DATA_RETRY_AFTER,
        )
