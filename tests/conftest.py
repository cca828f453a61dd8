"""
测试配置 - pytest 配置和公共 fixtures
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from shiptrack.adapters.memory_store_adapter import InMemoryKeyValueStore
from shiptrack.domain.models import (
    CostTier,
    FetchStatus,
    IdentifierType,
    ProviderDescriptor,
    RateLimit,
    RawProviderResult,
)
from shiptrack.infrastructure.cache import ResponseCache, ShipmentCache
from shiptrack.infrastructure.rate_limiter import RateLimitTracker
from shiptrack.orchestrator.orchestrator import FetchOrchestrator
from shiptrack.orchestrator.registry import ProviderRegistry
from shiptrack.ports.interfaces import TimePort, TrackingProviderPort
from shiptrack.use_cases.track_shipment import create_tracking_service


BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
ALL_TYPES = frozenset(IdentifierType)


# ==================== 测试替身 ====================

class FixedClock(TimePort):
    """可手动推进的时钟，同时提供 datetime 和单调秒数"""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start
        self.seconds = 1000.0

    def get_current_datetime(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.seconds

    def advance(self, minutes: float = 0, seconds: float = 0):
        delta = minutes * 60 + seconds
        self.now = self.now + timedelta(seconds=delta)
        self.seconds += delta


class FakeAdapter(TrackingProviderPort):
    """
    可编排的数据源

    按顺序消费 responses：dict 作为载荷返回，异常实例直接抛出；
    用完后重复最后一个。
    """

    def __init__(self, *responses: Any, delay: float = 0.0):
        self.responses = list(responses) or [{}]
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.cancelled = False

    async def fetch(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        timeout: float,
    ) -> Dict[str, Any]:
        self.calls.append({"identifier": identifier, "type": identifier_type, "timeout": timeout})
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def call_count(self) -> int:
        return len(self.calls)


def make_descriptor(
    name: str,
    reliability: float = 0.85,
    cost_tier: CostTier = CostTier.PAID,
    is_aggregator: bool = False,
    has_credential: bool = True,
    requests_per_minute: int = 60,
    timeout: float = 1.0,
    supported_types=ALL_TYPES,
) -> ProviderDescriptor:
    return ProviderDescriptor(
        name=name,
        base_url=f"https://api.{name}.test/tracking",
        has_credential=has_credential,
        rate_limit=RateLimit(requests_per_minute, requests_per_minute * 10),
        reliability=reliability,
        timeout=timeout,
        retry_attempts=2,
        supported_types=frozenset(supported_types),
        cost_tier=cost_tier,
        is_aggregator=is_aggregator,
    )


def make_payload(
    carrier: Optional[str] = "Maersk",
    status: Optional[str] = "In Transit",
    events: Optional[List[Dict[str, Any]]] = None,
    service: Optional[str] = None,
) -> Dict[str, Any]:
    if events is None:
        events = [
            {"timestamp": "2024-02-20T08:00:00Z", "status": "Gate In", "location": "Shanghai"},
            {"timestamp": "2024-02-22T10:00:00Z", "status": "Loaded", "location": "Shanghai"},
        ]
    return {"carrier": carrier, "status": status, "service": service, "timeline": events}


def make_result(
    provider: str,
    payload: Optional[Dict[str, Any]] = None,
    reliability: float = 0.85,
    status: FetchStatus = FetchStatus.SUCCESS,
    identifier: str = "ABCD1234567",
) -> RawProviderResult:
    return RawProviderResult(
        provider=provider,
        identifier=identifier,
        payload=payload if payload is not None else make_payload(),
        timestamp=BASE_TIME,
        reliability=reliability,
        status=status,
    )


def build_orchestrator(descriptors, adapters, clock: FixedClock) -> FetchOrchestrator:
    registry = ProviderRegistry(descriptors, adapters)
    return FetchOrchestrator(
        registry=registry,
        rate_limiter=RateLimitTracker(descriptors, clock=clock.monotonic),
        response_cache=ResponseCache(clock=clock.monotonic),
    )


def build_service(descriptors, adapters, clock: FixedClock):
    registry = ProviderRegistry(descriptors, adapters)
    store = InMemoryKeyValueStore(default_ttl=7 * 24 * 3600, clock=clock.monotonic)
    service = create_tracking_service(
        registry=registry,
        store=store,
        time_port=clock,
        rate_limiter=RateLimitTracker(descriptors, clock=clock.monotonic),
    )
    # 原始响应缓存也使用测试时钟
    service.orchestrator.response_cache = ResponseCache(clock=clock.monotonic)
    return service


# ==================== Fixtures ====================

@pytest.fixture
def clock():
    """可推进的测试时钟"""
    return FixedClock()


@pytest.fixture
def memory_store(clock):
    """使用测试时钟的内存存储"""
    return InMemoryKeyValueStore(default_ttl=7 * 24 * 3600, clock=clock.monotonic)


@pytest.fixture
def shipment_cache(memory_store, clock):
    return ShipmentCache(store=memory_store, time_port=clock)
