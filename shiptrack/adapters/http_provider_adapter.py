"""
HTTP 数据源适配器 - 实现 TrackingProviderPort

两类数据源家族：
- 承运人直连 API（GET /track/{identifier}）
- 聚合商 API（POST /track，内部再扇出到多家承运人）

各家响应格式不同，统一规范化为
{carrier, status, service, timeline: [{timestamp, status, location, ...}]}。
"""

from abc import abstractmethod
from typing import Optional, Dict, Any, List

import httpx

from shiptrack.domain.models import IdentifierType
from shiptrack.infrastructure.logging import get_logger
from shiptrack.ports.interfaces import (
    TrackingProviderPort,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderConnectionError,
    InvalidPayloadError,
)


logger = get_logger(__name__)

USER_AGENT = "shiptrack/1.0"


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    """解析 Retry-After 头（只支持秒数）"""
    value = response.headers.get("Retry-After")
    if value:
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _format_location(location: Any) -> str:
    if isinstance(location, dict):
        parts = [
            location.get("locationName") or location.get("name"),
            location.get("city"),
            location.get("country"),
        ]
        return ", ".join(p for p in parts if p)
    return str(location) if location else ""


def normalize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """把单个事件规范化为统一字段"""
    return {
        "id": event.get("id") or event.get("eventId"),
        "timestamp": event.get("timestamp") or event.get("eventDateTime") or event.get("date"),
        "status": event.get("status") or event.get("eventType") or "",
        "location": _format_location(event.get("location")),
        "description": event.get("description") or "",
        "is_completed": bool(event.get("isCompleted", event.get("is_completed", False))),
    }


def normalize_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    规范化数据源响应

    兼容常见的字段别名（carrierName / shippingLine、events / timeline 等），
    缺失的字段保留为 None，由合并器决定如何补齐。
    """
    if "data" in data and isinstance(data["data"], dict):
        data = data["data"]

    events = data.get("timeline")
    if events is None:
        events = data.get("events") or []
    if not isinstance(events, list):
        raise InvalidPayloadError(f"事件列表格式错误: {type(events).__name__}")

    timeline: List[Dict[str, Any]] = [
        normalize_event(e) for e in events if isinstance(e, dict)
    ]

    return {
        "carrier": data.get("carrier") or data.get("carrierName") or data.get("shippingLine"),
        "status": data.get("status") or data.get("currentStatus"),
        "service": data.get("service") or data.get("serviceType"),
        "trackingType": data.get("trackingType"),
        "timeline": timeline,
    }


class BaseHttpTrackingAdapter(TrackingProviderPort):
    """
    HTTP 数据源适配器基类

    负责发送请求、把 httpx 异常转换为端口异常、规范化响应。
    子类只需实现具体的请求形式。
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        初始化适配器

        Args:
            name: 数据源名称
            base_url: API 基础地址
            api_key: API 密钥
            client: 共享的 httpx 客户端（可选，测试时可注入 MockTransport）
        """
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(headers={"User-Agent": USER_AGENT})
        return self._client

    def _auth_headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    @abstractmethod
    async def _send(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        timeout: float,
    ) -> httpx.Response:
        """发送请求，返回原始响应"""
        pass

    async def fetch(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        timeout: float,
    ) -> Dict[str, Any]:
        try:
            response = await self._send(identifier, identifier_type, timeout)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"请求超时: {e}", source=self.name) from e
        except httpx.TransportError as e:
            raise ProviderConnectionError(f"连接失败: {e}", source=self.name) from e

        if response.status_code >= 400:
            raise ProviderRequestError(
                f"API error {response.status_code}: {response.reason_phrase}",
                source=self.name,
                status_code=response.status_code,
                retry_after=parse_retry_after(response),
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidPayloadError(f"响应不是合法 JSON: {e}", source=self.name) from e

        if not isinstance(data, dict):
            raise InvalidPayloadError(
                f"响应格式错误: {type(data).__name__}", source=self.name
            )

        logger.debug(
            f"{self.name} 响应 {response.status_code}",
            extra={"provider": self.name, "identifier": identifier},
        )
        return normalize_payload(data)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class CarrierApiAdapter(BaseHttpTrackingAdapter):
    """承运人直连 API：GET {base_url}/track/{identifier}?type=..."""

    async def _send(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        timeout: float,
    ) -> httpx.Response:
        params = {"type": identifier_type.value} if identifier_type else None
        return await self.client.get(
            f"{self.base_url}/track/{identifier}",
            params=params,
            headers=self._auth_headers(),
            timeout=timeout,
        )


class AggregatorApiAdapter(BaseHttpTrackingAdapter):
    """聚合商 API：POST {base_url}/track，密钥放在 X-API-Key 头"""

    def _auth_headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {"X-API-Key": self.api_key}

    async def _send(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        timeout: float,
    ) -> httpx.Response:
        body = {
            "trackingNumber": identifier,
            "type": identifier_type.value if identifier_type else "auto",
        }
        return await self.client.post(
            f"{self.base_url}/track",
            json=body,
            headers=self._auth_headers(),
            timeout=timeout,
        )
