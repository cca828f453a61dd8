"""
追踪用例 - 解析追踪号的统一入口

处理流程：
1. 校验追踪号（不合法直接返回，不访问网络）
2. 查货运记录缓存
   - 年龄 < 60 分钟：直接返回
   - 否则尝试刷新，刷新失败返回旧数据并附带警告
3. 缓存未命中：实时获取
   - 失败时查保留期内的极旧数据，有则返回并附带警告
   - 否则返回整体失败
"""

import time
from typing import Any, Callable, Dict, List, Optional

from shiptrack.domain.models import (
    IdentifierType,
    ProviderHealthReport,
    ResolutionResult,
    ResolutionState,
    ShipmentRecord,
    TrackingHistory,
)
from shiptrack.infrastructure.cache import ResponseCache, ShipmentCache
from shiptrack.infrastructure.errors import (
    AggregateFailureError,
    FailureClassifier,
    ValidationError,
)
from shiptrack.infrastructure.logging import get_logger
from shiptrack.infrastructure.metrics import (
    get_gauge,
    increment_counter,
    record_histogram,
)
from shiptrack.infrastructure.rate_limiter import RateLimitTracker
from shiptrack.infrastructure.security import IdentifierValidator
from shiptrack.orchestrator.merger import DataMerger
from shiptrack.orchestrator.orchestrator import EARLY_STOP_RELIABILITY, FetchOrchestrator
from shiptrack.orchestrator.prioritizer import ProviderPrioritizer
from shiptrack.orchestrator.registry import ProviderRegistry
from shiptrack.ports.interfaces import KeyValueStorePort, TimePort
from shiptrack.use_cases.base import UseCase
from shiptrack.use_cases.provider_health import GetProviderHealthUseCase


logger = get_logger(__name__)

FRESH_AGE_MINUTES = 60


class TrackShipmentUseCase(UseCase[ResolutionResult]):
    """
    追踪解析服务

    所有组件通过构造函数注入，便于测试替换。
    """

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        merger: DataMerger,
        shipment_cache: ShipmentCache,
        classifier: Optional[FailureClassifier] = None,
        health_use_case: Optional[GetProviderHealthUseCase] = None,
        fresh_age_minutes: int = FRESH_AGE_MINUTES,
    ):
        """
        初始化服务

        Args:
            orchestrator: 获取编排器
            merger: 数据合并器
            shipment_cache: 货运记录缓存
            classifier: 故障分类器
            health_use_case: 数据源健康用例（可选）
            fresh_age_minutes: 缓存数据视为新鲜的最大年龄（分钟）
        """
        self.orchestrator = orchestrator
        self.merger = merger
        self.shipment_cache = shipment_cache
        self.classifier = classifier or FailureClassifier()
        self.health_use_case = health_use_case or GetProviderHealthUseCase(orchestrator.registry)
        self.fresh_age_minutes = fresh_age_minutes

    async def execute(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType] = None,
        force_refresh: bool = False,
    ) -> ResolutionResult:
        return await self.track(identifier, identifier_type, force_refresh)

    async def track(
        self,
        identifier: Optional[str],
        identifier_type: Optional[IdentifierType] = None,
        force_refresh: bool = False,
    ) -> ResolutionResult:
        """
        解析追踪号

        Args:
            identifier: 用户输入的追踪号
            identifier_type: 追踪号类型（None 表示自动）
            force_refresh: 跳过所有缓存，强制实时获取

        Returns:
            ResolutionResult: 解析结果，state 为终止状态
        """
        start = time.perf_counter()
        gauge = get_gauge("shiptrack_active_resolutions")
        if gauge:
            gauge.inc()
        try:
            result = await self._resolve(identifier, identifier_type, force_refresh)
        finally:
            if gauge:
                gauge.dec()

        duration = time.perf_counter() - start
        record_histogram("shiptrack_resolution_duration_seconds", duration)
        increment_counter("shiptrack_resolutions_total", state=result.state.value)
        logger.info(
            f"解析完成 success={result.success} from_cache={result.from_cache}",
            extra={
                "identifier": identifier,
                "state": result.state.value,
                "duration_ms": duration * 1000,
            },
        )
        return result

    async def _resolve(
        self,
        identifier: Optional[str],
        identifier_type: Optional[IdentifierType],
        force_refresh: bool,
    ) -> ResolutionResult:
        try:
            normalized = IdentifierValidator.validate(identifier)
        except ValidationError as e:
            return ResolutionResult(
                success=False,
                error=self.classifier.validation_error(e.message, e.user_message),
                state=ResolutionState.VALIDATING,
            )

        try:
            if not force_refresh:
                cached = self._read_cache(self.shipment_cache.get, normalized, identifier_type)
                if cached is not None:
                    return await self._serve_cached(normalized, identifier_type, cached)

            return await self._fetch_live(normalized, identifier_type, force_refresh)
        except Exception as e:
            logger.exception("解析过程中发生未预期的错误", extra={"identifier": normalized})
            return ResolutionResult(
                success=False,
                error=self.classifier.classify(e),
                state=ResolutionState.NO_DATA,
            )

    def _read_cache(
        self,
        lookup: Callable[[str, Optional[IdentifierType]], Optional[ShipmentRecord]],
        identifier: str,
        identifier_type: Optional[IdentifierType],
    ) -> Optional[ShipmentRecord]:
        """读取货运记录缓存，存储故障按未命中处理"""
        try:
            return lookup(identifier, identifier_type)
        except Exception:
            logger.exception("读取货运记录缓存失败，按未命中处理", extra={"identifier": identifier})
            return None

    async def _serve_cached(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        cached: ShipmentRecord,
    ) -> ResolutionResult:
        age = self.shipment_cache.age_minutes(cached)
        if age < self.fresh_age_minutes:
            return ResolutionResult(
                success=True,
                data=cached,
                from_cache=True,
                data_age_minutes=age,
                state=ResolutionState.FRESH_HIT,
            )

        logger.info(
            f"缓存数据已有 {age} 分钟，尝试刷新",
            extra={"identifier": identifier, "state": ResolutionState.STALE_HIT_ATTEMPT_REFRESH.value},
        )
        try:
            record = await self._fetch_and_store(identifier, identifier_type, use_cache=True)
        except AggregateFailureError as e:
            logger.warning(
                f"刷新失败，返回旧数据: {e.error_code.value}",
                extra={"identifier": identifier},
            )
        except Exception as e:
            logger.exception(
                f"刷新过程中发生未预期的错误，返回旧数据: {self.classifier.classify(e).code.value}",
                extra={"identifier": identifier},
            )
        else:
            return ResolutionResult(
                success=True,
                data=record,
                from_cache=False,
                data_age_minutes=0,
                state=ResolutionState.REFRESH_SUCCESS,
            )

        return ResolutionResult(
            success=True,
            data=cached,
            error=self.classifier.stale_data_warning(age),
            from_cache=True,
            data_age_minutes=age,
            state=ResolutionState.REFRESH_FAILED_RETURN_STALE,
        )

    async def _fetch_live(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        force_refresh: bool,
    ) -> ResolutionResult:
        try:
            record = await self._fetch_and_store(
                identifier, identifier_type, use_cache=not force_refresh
            )
        except AggregateFailureError as e:
            failure = e.tracking_error
        except Exception as e:
            logger.exception("实时获取过程中发生未预期的错误", extra={"identifier": identifier})
            failure = self.classifier.classify(e)
        else:
            return ResolutionResult(
                success=True,
                data=record,
                from_cache=False,
                data_age_minutes=0,
                state=ResolutionState.FETCH_SUCCESS,
            )

        stale = self._read_cache(self.shipment_cache.get_stale, identifier, identifier_type)
        if stale is not None:
            age = self.shipment_cache.age_minutes(stale)
            logger.warning(
                f"实时获取失败，返回 {age} 分钟前的极旧数据",
                extra={"identifier": identifier, "state": ResolutionState.VERY_STALE_HIT.value},
            )
            return ResolutionResult(
                success=True,
                data=stale,
                error=self.classifier.very_stale_data(age),
                from_cache=True,
                data_age_minutes=age,
                state=ResolutionState.VERY_STALE_HIT,
            )
        return ResolutionResult(
            success=False,
            error=failure,
            state=ResolutionState.NO_DATA,
        )

    async def _fetch_and_store(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        use_cache: bool,
    ) -> ShipmentRecord:
        results = await self.orchestrator.resolve(identifier, identifier_type, use_cache=use_cache)
        record = self.merger.merge(results, identifier_type)
        try:
            self.shipment_cache.set(identifier, identifier_type, record)
        except Exception:
            # 写缓存失败不影响本次结果
            logger.exception("写入货运记录缓存失败", extra={"identifier": identifier})
        return record

    async def refresh_tracking_data(
        self,
        identifier: Optional[str],
        identifier_type: Optional[IdentifierType] = None,
    ) -> ResolutionResult:
        """强制刷新（跳过所有缓存）"""
        return await self.track(identifier, identifier_type, force_refresh=True)

    async def get_tracking_history(
        self,
        identifier: Optional[str],
        identifier_type: Optional[IdentifierType] = None,
    ) -> TrackingHistory:
        """获取事件历史"""
        result = await self.track(identifier, identifier_type)
        if result.success and result.data is not None:
            return TrackingHistory(success=True, events=result.data.timeline)
        return TrackingHistory(success=False, error=result.error)

    def get_provider_health(self) -> ProviderHealthReport:
        return self.health_use_case.execute()

    def describe_candidates(
        self,
        identifier_type: Optional[IdentifierType] = None,
    ) -> List[Dict[str, Any]]:
        """该类型追踪号会依次访问的数据源"""
        return self.orchestrator.describe_candidates(identifier_type)

    def clear_cache(self) -> None:
        """清空原始响应缓存和货运记录缓存"""
        self.orchestrator.response_cache.clear()
        self.shipment_cache.clear()
        logger.info("追踪缓存已清空")


def create_tracking_service(
    registry: ProviderRegistry,
    store: KeyValueStorePort,
    time_port: TimePort,
    fresh_age_minutes: int = FRESH_AGE_MINUTES,
    stale_age_minutes: int = 1440,
    retention_seconds: int = 7 * 24 * 3600,
    response_cache_ttl: int = 15 * 60,
    early_stop_reliability: float = EARLY_STOP_RELIABILITY,
    rate_limiter: Optional[RateLimitTracker] = None,
) -> TrackShipmentUseCase:
    """
    创建追踪服务实例

    便于依赖注入和测试
    """
    classifier = FailureClassifier()
    orchestrator = FetchOrchestrator(
        registry=registry,
        rate_limiter=rate_limiter or RateLimitTracker(registry.all_providers()),
        response_cache=ResponseCache(ttl=response_cache_ttl),
        prioritizer=ProviderPrioritizer(),
        classifier=classifier,
        early_stop_reliability=early_stop_reliability,
    )
    shipment_cache = ShipmentCache(
        store=store,
        time_port=time_port,
        normal_ttl=stale_age_minutes * 60,
        retention_ttl=retention_seconds,
    )
    return TrackShipmentUseCase(
        orchestrator=orchestrator,
        merger=DataMerger(clock=time_port.get_current_datetime),
        shipment_cache=shipment_cache,
        classifier=classifier,
        health_use_case=GetProviderHealthUseCase(registry),
        fresh_age_minutes=fresh_age_minutes,
    )
