"""
依赖注入 - FastAPI 依赖配置

集中管理所有服务的创建和注入，
确保单一实例和正确的生命周期管理。
"""

from functools import lru_cache
from typing import Any, Dict, Optional
import os

from shiptrack.adapters.memory_store_adapter import InMemoryKeyValueStore
from shiptrack.adapters.system_time_adapter import SystemTimeAdapter
from shiptrack.config import TRACKING_CONFIG, build_descriptors
from shiptrack.infrastructure.rate_limiter import RateLimitTracker
from shiptrack.orchestrator.registry import ProviderRegistry
from shiptrack.use_cases.track_shipment import TrackShipmentUseCase, create_tracking_service


class ServiceContainer:
    """
    服务容器 - 管理所有服务实例

    采用单例模式确保服务实例的复用
    """

    _instance: Optional['ServiceContainer'] = None
    _initialized: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        descriptors, api_keys = build_descriptors()
        self._registry = ProviderRegistry.from_config(descriptors, api_keys)
        self._time = SystemTimeAdapter()
        self._store = InMemoryKeyValueStore(default_ttl=TRACKING_CONFIG["retention_seconds"])
        self._rate_limiter = RateLimitTracker(self._registry.all_providers())

        self._tracking_service = create_tracking_service(
            registry=self._registry,
            store=self._store,
            time_port=self._time,
            fresh_age_minutes=TRACKING_CONFIG["fresh_age_minutes"],
            stale_age_minutes=TRACKING_CONFIG["stale_age_minutes"],
            retention_seconds=TRACKING_CONFIG["retention_seconds"],
            response_cache_ttl=TRACKING_CONFIG["response_cache_ttl"],
            early_stop_reliability=TRACKING_CONFIG["early_stop_reliability"],
            rate_limiter=self._rate_limiter,
        )

        self._initialized = True

    @property
    def tracking_service(self) -> TrackShipmentUseCase:
        return self._tracking_service

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def rate_limiter(self) -> RateLimitTracker:
        return self._rate_limiter

    @property
    def time_adapter(self) -> SystemTimeAdapter:
        return self._time

    def get_cache_stats(self) -> Dict[str, Any]:
        """各缓存层的统计"""
        return {
            "response": self._tracking_service.orchestrator.response_cache.get_stats_dict(),
            "shipment": self._store.get_stats_dict(),
        }

    async def aclose(self) -> None:
        """关闭数据源连接"""
        await self._registry.aclose()


@lru_cache()
def get_service_container() -> ServiceContainer:
    """
    获取服务容器单例

    使用 lru_cache 确保只创建一次
    """
    return ServiceContainer()


def get_tracking_service() -> TrackShipmentUseCase:
    """FastAPI 依赖：获取追踪服务"""
    return get_service_container().tracking_service


def get_time_service() -> SystemTimeAdapter:
    """FastAPI 依赖：获取时间服务"""
    return get_service_container().time_adapter


# 配置类
class Settings:
    """应用配置"""

    APP_NAME: str = "shiptrack API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = os.getenv('DEBUG', 'false').lower() == 'true'

    HOST: str = os.getenv('HOST', '0.0.0.0')
    PORT: int = int(os.getenv('PORT', '8000'))

    CORS_ORIGINS: list = os.getenv('CORS_ORIGINS', '*').split(',')


@lru_cache()
def get_settings() -> Settings:
    """获取应用配置"""
    return Settings()
