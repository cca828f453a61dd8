"""
端口接口定义 - 依赖倒置的核心

所有外部服务交互都通过这些接口进行，
具体实现由适配器层提供。

设计原则：
1. 接口隔离：每个接口只包含相关的方法
2. 依赖倒置：编排层依赖接口，不依赖具体实现
3. 异常抽象：接口定义标准异常类型
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Dict, Any

from shiptrack.domain.models import IdentifierType


# ==================== 异常定义 ====================

class PortError(Exception):
    """端口层基础异常"""
    def __init__(self, message: str, source: str = "unknown"):
        self.message = message
        self.source = source
        super().__init__(f"[{source}] {message}")


class ProviderRequestError(PortError):
    """数据源返回了错误的 HTTP 状态"""

    def __init__(
        self,
        message: str,
        source: str = "unknown",
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, source)
        self.status_code = status_code
        self.retry_after = retry_after


class ProviderTimeoutError(PortError):
    """数据源请求超时"""
    pass


class ProviderConnectionError(PortError):
    """无法连接数据源（DNS 失败、连接被拒绝等）"""
    pass


class InvalidPayloadError(PortError):
    """数据源响应无法解析"""
    pass


# ==================== 端口接口 ====================

class TrackingProviderPort(ABC):
    """追踪数据源端口 - 每个数据源家族实现一次"""

    @abstractmethod
    async def fetch(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        timeout: float,
    ) -> Dict[str, Any]:
        """
        获取原始追踪数据

        Args:
            identifier: 追踪号
            identifier_type: 追踪号类型（None 表示自动）
            timeout: 超时时间（秒）

        Returns:
            Dict: 规范化后的载荷 {carrier, status, service, timeline: [...]}

        Raises:
            ProviderRequestError: 数据源返回错误状态
            ProviderTimeoutError: 请求超时
            ProviderConnectionError: 网络不可达
            InvalidPayloadError: 响应无法解析
        """
        pass

    async def aclose(self) -> None:
        """释放底层连接（可选）"""
        return None


class KeyValueStorePort(ABC):
    """通用键值存储端口（支持 TTL）"""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """读取键值，不存在或已过期返回 None"""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        写入键值

        Args:
            key: 键
            value: 值
            ttl: 过期时间（秒），None 使用存储默认值
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """删除键，返回是否存在"""
        pass

    def clear(self) -> None:
        """清空存储（可选）"""
        return None


class TimePort(ABC):
    """时间服务端口"""

    @abstractmethod
    def get_current_datetime(self) -> datetime:
        """
        获取当前日期时间

        Returns:
            datetime: 当前时间（带时区）
        """
        pass
