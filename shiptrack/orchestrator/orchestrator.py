"""
获取编排器 - 按优先级顺序访问数据源

设计原则：
1. 顺序访问：一次只有一个数据源请求在进行
2. 限流感知：超出配额的数据源直接跳过
3. 超时约束：每个请求受数据源自身超时限制，超时即取消
4. 提前停止：拿到高可靠数据源的完整结果后不再继续
5. 错误隔离：单个数据源失败只记录，不中断整个流程
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

from shiptrack.domain.models import (
    FetchStatus,
    IdentifierType,
    ProviderDescriptor,
    RawProviderResult,
    TrackingError,
    utcnow,
)
from shiptrack.infrastructure.cache import ResponseCache
from shiptrack.infrastructure.errors import AggregateFailureError, FailureClassifier
from shiptrack.infrastructure.logging import get_logger
from shiptrack.infrastructure.metrics import increment_counter, record_histogram
from shiptrack.infrastructure.rate_limiter import RateLimitTracker
from shiptrack.orchestrator.prioritizer import ProviderPrioritizer
from shiptrack.orchestrator.registry import ProviderRegistry
from shiptrack.ports.interfaces import InvalidPayloadError, TrackingProviderPort


logger = get_logger(__name__)

EARLY_STOP_RELIABILITY = 0.90


class FetchOrchestrator:
    """
    获取编排器

    职责：
    1. 查原始响应缓存
    2. 按优先级依次请求数据源
    3. 收集成功 / 部分成功的结果
    4. 全部失败时给出整体判定
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        rate_limiter: RateLimitTracker,
        response_cache: ResponseCache,
        prioritizer: Optional[ProviderPrioritizer] = None,
        classifier: Optional[FailureClassifier] = None,
        early_stop_reliability: float = EARLY_STOP_RELIABILITY,
    ):
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.response_cache = response_cache
        self.prioritizer = prioritizer or ProviderPrioritizer()
        self.classifier = classifier or FailureClassifier()
        self.early_stop_reliability = early_stop_reliability

    async def resolve(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType] = None,
        use_cache: bool = True,
    ) -> List[RawProviderResult]:
        """
        获取追踪号的原始结果

        Args:
            identifier: 规范化后的追踪号
            identifier_type: 追踪号类型（None 表示自动）
            use_cache: 是否使用原始响应缓存

        Returns:
            List[RawProviderResult]: 可用结果（按访问顺序，第一个为主数据源）

        Raises:
            AggregateFailureError: 没有任何可用结果
        """
        if use_cache:
            cached = self.response_cache.get(identifier, identifier_type)
            if cached is not None:
                logger.debug(
                    "原始响应缓存命中",
                    extra={"identifier": identifier, "provider": cached.provider},
                )
                return [cached]

        candidates = self.registry.list_providers(identifier_type)
        ordered = self.prioritizer.prioritize(candidates, identifier_type)
        logger.info(
            f"候选数据源: {[p.name for p in ordered]}",
            extra={"identifier": identifier},
        )

        results: List[RawProviderResult] = []
        errors: List[TrackingError] = []
        cached_success = False

        for descriptor in ordered:
            adapter = self.registry.get_adapter(descriptor.name)
            if adapter is None:
                logger.warning(
                    "数据源没有可用的适配器，跳过",
                    extra={"identifier": identifier, "provider": descriptor.name},
                )
                continue

            if not self.rate_limiter.try_acquire(descriptor.name):
                logger.warning(
                    "超出限流配额，跳过",
                    extra={"identifier": identifier, "provider": descriptor.name},
                )
                increment_counter(
                    "shiptrack_provider_attempts_total",
                    provider=descriptor.name,
                    result="rate_limited",
                )
                errors.append(self.classifier.rate_limited(
                    descriptor.name, f"Rate limit exceeded for {descriptor.name}"
                ))
                continue

            result = await self._attempt(descriptor, adapter, identifier, identifier_type)

            if result.status == FetchStatus.SUCCESS:
                if not cached_success:
                    self.response_cache.set(identifier, identifier_type, result)
                    cached_success = True
                results.append(result)
                if descriptor.reliability > self.early_stop_reliability:
                    logger.info(
                        "高可靠数据源返回完整结果，提前停止",
                        extra={"identifier": identifier, "provider": descriptor.name},
                    )
                    break
            elif result.status == FetchStatus.PARTIAL:
                results.append(result)
            else:
                errors.append(result.error)

        if not results:
            aggregate = self.classifier.aggregate(errors)
            logger.error(
                f"所有数据源都失败: {aggregate.code.value}",
                extra={"identifier": identifier},
            )
            raise AggregateFailureError(aggregate, errors)

        return results

    async def _attempt(
        self,
        descriptor: ProviderDescriptor,
        adapter: TrackingProviderPort,
        identifier: str,
        identifier_type: Optional[IdentifierType],
    ) -> RawProviderResult:
        """请求单个数据源，失败时返回带分类错误的结果"""
        start = time.perf_counter()
        try:
            payload = await asyncio.wait_for(
                adapter.fetch(identifier, identifier_type, descriptor.timeout),
                timeout=descriptor.timeout,
            )
            status = self.assess_payload(payload, descriptor.name)
        except Exception as e:
            duration = time.perf_counter() - start
            error = self.classifier.classify(e, provider=descriptor.name)
            logger.warning(
                f"数据源请求失败: {error.code.value} {error.message}",
                extra={
                    "identifier": identifier,
                    "provider": descriptor.name,
                    "duration_ms": duration * 1000,
                },
            )
            increment_counter(
                "shiptrack_provider_attempts_total",
                provider=descriptor.name,
                result=error.code.value.lower(),
            )
            record_histogram("shiptrack_provider_duration_seconds", duration)
            return RawProviderResult(
                provider=descriptor.name,
                identifier=identifier,
                payload=None,
                timestamp=utcnow(),
                reliability=0.0,
                status=FetchStatus.ERROR,
                error=error,
            )

        duration = time.perf_counter() - start
        logger.info(
            f"数据源返回 {status.value}",
            extra={
                "identifier": identifier,
                "provider": descriptor.name,
                "duration_ms": duration * 1000,
            },
        )
        increment_counter(
            "shiptrack_provider_attempts_total",
            provider=descriptor.name,
            result=status.value,
        )
        record_histogram("shiptrack_provider_duration_seconds", duration)
        return RawProviderResult(
            provider=descriptor.name,
            identifier=identifier,
            payload=payload,
            timestamp=utcnow(),
            reliability=descriptor.reliability,
            status=status,
        )

    @staticmethod
    def assess_payload(payload: Any, provider: str) -> FetchStatus:
        """
        判断载荷的完整程度

        - 有状态且有时间线：完整
        - 只有部分字段：部分成功
        - 什么都没有：视为无效响应
        """
        if not isinstance(payload, dict):
            raise InvalidPayloadError(
                f"载荷格式错误: {type(payload).__name__}", source=provider
            )

        has_status = bool(payload.get("status"))
        has_timeline = bool(payload.get("timeline"))
        if has_status and has_timeline:
            return FetchStatus.SUCCESS
        if has_status or has_timeline or payload.get("carrier"):
            return FetchStatus.PARTIAL
        raise InvalidPayloadError("载荷中没有追踪数据", source=provider)

    def describe_candidates(
        self,
        identifier_type: Optional[IdentifierType] = None,
    ) -> List[Dict[str, Any]]:
        """按访问顺序列出候选数据源"""
        ordered = self.prioritizer.prioritize(
            self.registry.list_providers(identifier_type), identifier_type
        )
        return [
            {
                "name": p.name,
                "reliability": p.reliability,
                "cost_tier": p.cost_tier.value,
                "is_aggregator": p.is_aggregator,
                "coverage": list(p.coverage),
            }
            for p in ordered
        ]
