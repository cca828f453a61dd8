"""
适配器层 - 端口接口的具体实现

包含：
- CarrierApiAdapter: 承运人直连 API 适配器
- AggregatorApiAdapter: 聚合商 API 适配器
- InMemoryKeyValueStore: 内存键值存储
- SystemTimeAdapter: 系统时间适配器
"""

from shiptrack.adapters.http_provider_adapter import (
    BaseHttpTrackingAdapter,
    CarrierApiAdapter,
    AggregatorApiAdapter,
    normalize_payload,
)
from shiptrack.adapters.memory_store_adapter import InMemoryKeyValueStore
from shiptrack.adapters.system_time_adapter import SystemTimeAdapter

__all__ = [
    "BaseHttpTrackingAdapter",
    "CarrierApiAdapter",
    "AggregatorApiAdapter",
    "normalize_payload",
    "InMemoryKeyValueStore",
    "SystemTimeAdapter",
]
