"""
端口层 - 外部依赖的抽象接口
"""

from shiptrack.ports.interfaces import (
    PortError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderConnectionError,
    InvalidPayloadError,
    TrackingProviderPort,
    KeyValueStorePort,
    TimePort,
)

__all__ = [
    "PortError",
    "ProviderRequestError",
    "ProviderTimeoutError",
    "ProviderConnectionError",
    "InvalidPayloadError",
    "TrackingProviderPort",
    "KeyValueStorePort",
    "TimePort",
]
