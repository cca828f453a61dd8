"""
数据源注册表 - 启动时构建的静态目录

负责：
1. 保存所有数据源描述（只读）
2. 按凭据和追踪号类型筛选候选数据源
3. 为每个数据源提供统一的获取接口（适配器）
"""

from typing import Dict, Iterable, List, Mapping, Optional

import httpx

from shiptrack.adapters.http_provider_adapter import (
    AggregatorApiAdapter,
    CarrierApiAdapter,
)
from shiptrack.domain.models import IdentifierType, ProviderDescriptor
from shiptrack.ports.interfaces import TrackingProviderPort


class ProviderRegistry:
    """数据源注册表"""

    def __init__(
        self,
        descriptors: Iterable[ProviderDescriptor],
        adapters: Optional[Mapping[str, TrackingProviderPort]] = None,
    ):
        """
        Args:
            descriptors: 数据源描述
            adapters: {数据源名称: 适配器}
        """
        self._descriptors: Dict[str, ProviderDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in self._descriptors:
                raise ValueError(f"重复的数据源名称: {descriptor.name}")
            self._descriptors[descriptor.name] = descriptor
        self._adapters: Dict[str, TrackingProviderPort] = dict(adapters or {})

    @classmethod
    def from_config(
        cls,
        descriptors: Iterable[ProviderDescriptor],
        api_keys: Mapping[str, str],
        client: Optional[httpx.AsyncClient] = None,
    ) -> "ProviderRegistry":
        """
        根据配置构建注册表，为已配置凭据的数据源创建 HTTP 适配器

        聚合商使用聚合商适配器，其余使用承运人直连适配器。
        """
        descriptors = list(descriptors)
        adapters: Dict[str, TrackingProviderPort] = {}
        for d in descriptors:
            if not d.has_credential:
                continue
            adapter_cls = AggregatorApiAdapter if d.is_aggregator else CarrierApiAdapter
            adapters[d.name] = adapter_cls(
                name=d.name,
                base_url=d.base_url,
                api_key=api_keys.get(d.name),
                client=client,
            )
        return cls(descriptors, adapters)

    def list_providers(
        self,
        identifier_type: Optional[IdentifierType] = None,
    ) -> List[ProviderDescriptor]:
        """
        候选数据源：已配置凭据，且（指定类型时）支持该类型

        Args:
            identifier_type: 追踪号类型（None 表示不限）
        """
        return [
            d for d in self._descriptors.values()
            if d.has_credential and d.supports(identifier_type)
        ]

    def all_providers(self) -> List[ProviderDescriptor]:
        """完整目录（包括未配置凭据的数据源）"""
        return list(self._descriptors.values())

    def get(self, name: str) -> Optional[ProviderDescriptor]:
        return self._descriptors.get(name)

    def get_adapter(self, name: str) -> Optional[TrackingProviderPort]:
        return self._adapters.get(name)

    async def aclose(self) -> None:
        """关闭所有适配器的连接"""
        for adapter in self._adapters.values():
            await adapter.aclose()
