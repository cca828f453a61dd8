"""
追踪用例单元测试
"""

import asyncio

import pytest

from shiptrack.domain.models import (
    ErrorCode,
    HealthStatus,
    IdentifierType,
    ResolutionState,
)
from shiptrack.adapters.memory_store_adapter import InMemoryKeyValueStore
from shiptrack.orchestrator.registry import ProviderRegistry
from shiptrack.ports.interfaces import ProviderConnectionError, ProviderRequestError
from shiptrack.use_cases.provider_health import GetProviderHealthUseCase
from shiptrack.use_cases.track_shipment import create_tracking_service
from tests.conftest import FakeAdapter, build_service, make_descriptor, make_payload


IDENTIFIER = "ABCD1234567"


def not_found() -> ProviderRequestError:
    return ProviderRequestError("API error 404: Not Found", source="carrier", status_code=404)


class ExplodingMerger:
    def merge(self, results, identifier_type=None):
        raise RuntimeError("merge exploded")


class TestValidation:
    """追踪号校验测试"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier", [None, "", "   ", "ab", "x" * 51, "ABC 123", "ABC#123"])
    async def test_invalid_identifier_rejected_before_fetch(self, clock, identifier):
        """测试非法追踪号在访问数据源之前被拒绝"""
        adapter = FakeAdapter(make_payload())
        service = build_service([make_descriptor("carrier")], {"carrier": adapter}, clock)

        result = await service.track(identifier)

        assert not result.success
        assert result.error.code == ErrorCode.VALIDATION_ERROR
        assert result.error.status_code == 400
        assert not result.error.retryable
        assert result.state == ResolutionState.VALIDATING
        assert adapter.call_count == 0

    @pytest.mark.asyncio
    async def test_identifier_normalized(self, clock):
        """测试追踪号去除空白并转为大写"""
        adapter = FakeAdapter(make_payload())
        service = build_service([make_descriptor("carrier")], {"carrier": adapter}, clock)

        result = await service.track("  abcd1234567 ")

        assert result.success
        assert result.data.identifier == IDENTIFIER
        assert adapter.calls[0]["identifier"] == IDENTIFIER


class TestCacheTiers:
    """缓存分层测试"""

    @pytest.mark.asyncio
    async def test_live_fetch(self, clock):
        """测试缓存未命中时实时获取"""
        service = build_service(
            [make_descriptor("carrier", reliability=0.95)],
            {"carrier": FakeAdapter(make_payload())},
            clock,
        )

        result = await service.track(IDENTIFIER, IdentifierType.CONTAINER)

        assert result.success
        assert result.state == ResolutionState.FETCH_SUCCESS
        assert not result.from_cache
        assert result.data_age_minutes == 0
        assert result.error is None
        assert result.data.data_source == "carrier"
        assert result.data.last_updated == clock.now

    @pytest.mark.asyncio
    async def test_fresh_hit_skips_providers(self, clock):
        """测试 30 分钟内的缓存直接返回"""
        adapter = FakeAdapter(make_payload())
        service = build_service([make_descriptor("carrier")], {"carrier": adapter}, clock)

        await service.track(IDENTIFIER)
        clock.advance(minutes=30)
        result = await service.track(IDENTIFIER)

        assert result.success
        assert result.from_cache
        assert result.data_age_minutes == 30
        assert result.state == ResolutionState.FRESH_HIT
        assert adapter.call_count == 1

    @pytest.mark.asyncio
    async def test_stale_entry_refreshed(self, clock):
        """测试 90 分钟的缓存触发刷新"""
        adapter = FakeAdapter(make_payload(status="Gate In"), make_payload(status="Discharged"))
        service = build_service([make_descriptor("carrier")], {"carrier": adapter}, clock)

        await service.track(IDENTIFIER)
        clock.advance(minutes=90)
        result = await service.track(IDENTIFIER)

        assert result.state == ResolutionState.REFRESH_SUCCESS
        assert not result.from_cache
        assert result.data.status == "Discharged"
        assert adapter.call_count == 2

    @pytest.mark.asyncio
    async def test_stale_returned_when_refresh_fails(self, clock):
        """测试刷新失败时返回旧数据并附带警告"""
        adapter = FakeAdapter(make_payload(), not_found())
        service = build_service([make_descriptor("carrier")], {"carrier": adapter}, clock)

        original = (await service.track(IDENTIFIER)).data
        clock.advance(minutes=90)
        result = await service.track(IDENTIFIER)

        assert result.success
        assert result.from_cache
        assert result.data_age_minutes == 90
        assert result.data == original
        assert result.error.code == ErrorCode.STALE_DATA_WARNING
        assert result.error.retry_after == 300
        assert result.state == ResolutionState.REFRESH_FAILED_RETURN_STALE
        assert adapter.call_count == 2

    @pytest.mark.asyncio
    async def test_very_stale_fallback(self, clock):
        """测试超过 24 小时的数据只在实时获取失败后作为兜底"""
        adapter = FakeAdapter(make_payload(), ProviderConnectionError("connection refused"))
        service = build_service([make_descriptor("carrier")], {"carrier": adapter}, clock)

        await service.track(IDENTIFIER)
        clock.advance(minutes=2 * 1440)
        result = await service.track(IDENTIFIER)

        assert result.success
        assert result.from_cache
        assert result.data_age_minutes == 2 * 1440
        assert result.error.code == ErrorCode.VERY_STALE_DATA
        assert result.error.retry_after == 600
        assert result.state == ResolutionState.VERY_STALE_HIT

    @pytest.mark.asyncio
    async def test_nothing_after_retention(self, clock):
        """测试超过保留期后不再返回旧数据"""
        adapter = FakeAdapter(make_payload(), not_found())
        service = build_service([make_descriptor("carrier")], {"carrier": adapter}, clock)

        await service.track(IDENTIFIER)
        clock.advance(minutes=8 * 1440)
        result = await service.track(IDENTIFIER)

        assert not result.success
        assert result.data is None
        assert result.state == ResolutionState.NO_DATA

    @pytest.mark.asyncio
    async def test_type_is_part_of_cache_key(self, clock):
        """测试不同类型的查询分别缓存"""
        adapter = FakeAdapter(make_payload())
        service = build_service([make_descriptor("carrier")], {"carrier": adapter}, clock)

        await service.track(IDENTIFIER, IdentifierType.CONTAINER)
        result = await service.track(IDENTIFIER)

        assert result.state == ResolutionState.FETCH_SUCCESS
        assert adapter.call_count == 2


class TestFailures:
    """失败路径测试"""

    @pytest.mark.asyncio
    async def test_all_not_found(self, clock):
        """测试所有数据源都未找到时报告未找到而非暂时不可用"""
        descriptors = [make_descriptor("a", reliability=0.95), make_descriptor("b")]
        adapters = {"a": FakeAdapter(not_found()), "b": FakeAdapter(not_found())}
        service = build_service(descriptors, adapters, clock)

        result = await service.track(IDENTIFIER)

        assert not result.success
        assert result.error.code == ErrorCode.NOT_FOUND
        assert not result.error.retryable
        assert result.state == ResolutionState.NO_DATA

    @pytest.mark.asyncio
    async def test_network_failure_without_cache(self, clock):
        """测试网络不可达且没有缓存时报告暂时不可用"""
        adapter = FakeAdapter(ProviderConnectionError("connection refused"))
        service = build_service([make_descriptor("a")], {"a": adapter}, clock)

        result = await service.track(IDENTIFIER)

        assert not result.success
        assert result.error.code == ErrorCode.NETWORK_ERROR
        assert result.error.retryable
        assert result.error.retry_after == 300

    @pytest.mark.asyncio
    async def test_unexpected_error_is_classified(self, clock):
        """测试未预期的异常被分类而不是抛出"""
        service = build_service([make_descriptor("a")], {"a": FakeAdapter(make_payload())}, clock)
        service.merger = ExplodingMerger()

        result = await service.track(IDENTIFIER)

        assert not result.success
        assert result.error.code == ErrorCode.UNKNOWN_ERROR
        assert result.state == ResolutionState.NO_DATA

    @pytest.mark.asyncio
    async def test_unexpected_refresh_error_returns_stale(self, clock):
        """测试刷新时抛出未预期异常仍返回旧数据"""
        service = build_service([make_descriptor("a")], {"a": FakeAdapter(make_payload())}, clock)
        await service.track(IDENTIFIER)
        clock.advance(minutes=90)
        service.merger = ExplodingMerger()

        result = await service.track(IDENTIFIER)

        assert result.success
        assert result.data.identifier == IDENTIFIER
        assert result.from_cache
        assert result.data_age_minutes == 90
        assert result.error.code == ErrorCode.STALE_DATA_WARNING
        assert result.state == ResolutionState.REFRESH_FAILED_RETURN_STALE

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_returns_very_stale(self, clock):
        """测试实时获取抛出未预期异常时回退到保留期内的数据"""
        service = build_service([make_descriptor("a")], {"a": FakeAdapter(make_payload())}, clock)
        await service.track(IDENTIFIER)
        clock.advance(minutes=48 * 60)
        service.merger = ExplodingMerger()

        result = await service.track(IDENTIFIER)

        assert result.success
        assert result.data_age_minutes == 48 * 60
        assert result.error.code == ErrorCode.VERY_STALE_DATA
        assert result.state == ResolutionState.VERY_STALE_HIT

    @pytest.mark.asyncio
    async def test_cache_read_failure_treated_as_miss(self, clock, monkeypatch):
        """测试缓存读取失败时按未命中处理"""
        adapter = FakeAdapter(make_payload())
        service = build_service([make_descriptor("a")], {"a": adapter}, clock)

        def broken_get(identifier, identifier_type=None):
            raise ConnectionError("store unavailable")

        monkeypatch.setattr(service.shipment_cache, "get", broken_get)

        result = await service.track(IDENTIFIER)

        assert result.success
        assert result.state == ResolutionState.FETCH_SUCCESS
        assert adapter.call_count == 1

    @pytest.mark.asyncio
    async def test_cache_write_failure_keeps_fresh_result(self, clock, monkeypatch):
        """测试缓存写入失败不影响本次获取结果"""
        service = build_service([make_descriptor("a")], {"a": FakeAdapter(make_payload())}, clock)

        def broken_set(identifier, identifier_type, record):
            raise ConnectionError("store unavailable")

        monkeypatch.setattr(service.shipment_cache, "set", broken_set)

        result = await service.track(IDENTIFIER)

        assert result.success
        assert result.state == ResolutionState.FETCH_SUCCESS
        assert result.data.carrier == "Maersk"


class TestForceRefresh:
    """强制刷新测试"""

    @pytest.mark.asyncio
    async def test_bypasses_fresh_cache(self, clock):
        """测试强制刷新跳过新鲜缓存"""
        adapter = FakeAdapter(make_payload())
        service = build_service([make_descriptor("a", reliability=0.95)], {"a": adapter}, clock)

        await service.track(IDENTIFIER)
        result = await service.refresh_tracking_data(IDENTIFIER)

        assert result.state == ResolutionState.FETCH_SUCCESS
        assert not result.from_cache
        assert adapter.call_count == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_falls_back(self, clock):
        """测试强制刷新失败时仍返回保留的数据"""
        adapter = FakeAdapter(make_payload(), not_found())
        service = build_service([make_descriptor("a")], {"a": adapter}, clock)

        await service.track(IDENTIFIER)
        clock.advance(minutes=5)
        result = await service.track(IDENTIFIER, force_refresh=True)

        assert result.success
        assert result.state == ResolutionState.VERY_STALE_HIT
        assert result.data_age_minutes == 5


class TestServiceOperations:
    """其他服务操作测试"""

    @pytest.mark.asyncio
    async def test_early_stop_threshold_configurable(self, clock):
        """测试提前停止阈值由工厂参数控制"""
        descriptors = [make_descriptor("a", reliability=0.95), make_descriptor("b", reliability=0.85)]
        adapters = {"a": FakeAdapter(make_payload()), "b": FakeAdapter(make_payload())}
        service = create_tracking_service(
            registry=ProviderRegistry(descriptors, adapters),
            store=InMemoryKeyValueStore(clock=clock.monotonic),
            time_port=clock,
            early_stop_reliability=0.99,
        )

        result = await service.track(IDENTIFIER)

        assert result.success
        assert adapters["b"].call_count == 1
        assert result.data.sources == ("a", "b")

    def test_describe_candidates(self, clock):
        """测试候选数据源按访问顺序列出"""
        descriptors = [
            make_descriptor("slow", reliability=0.70),
            make_descriptor("fast", reliability=0.95),
            make_descriptor("vessel", supported_types={IdentifierType.VESSEL}),
        ]
        service = build_service(descriptors, {}, clock)

        described = service.describe_candidates(IdentifierType.CONTAINER)

        assert [d["name"] for d in described] == ["fast", "slow"]
        assert described[0]["coverage"] == ["global"]

    @pytest.mark.asyncio
    async def test_history(self, clock):
        """测试获取事件历史"""
        service = build_service([make_descriptor("a")], {"a": FakeAdapter(make_payload())}, clock)

        history = await service.get_tracking_history(IDENTIFIER)

        assert history.success
        assert [e.status for e in history.events] == ["Gate In", "Loaded"]
        assert history.to_dict()["data"][0]["status"] == "Gate In"

    @pytest.mark.asyncio
    async def test_history_failure(self, clock):
        service = build_service([make_descriptor("a")], {"a": FakeAdapter(not_found())}, clock)

        history = await service.get_tracking_history(IDENTIFIER)

        assert not history.success
        assert history.events == ()
        assert history.error.code == ErrorCode.NOT_FOUND
        assert history.to_dict()["data"] is None

    @pytest.mark.asyncio
    async def test_clear_cache(self, clock):
        """测试清空缓存后重新获取"""
        adapter = FakeAdapter(make_payload())
        service = build_service([make_descriptor("a")], {"a": adapter}, clock)

        await service.track(IDENTIFIER)
        service.clear_cache()
        result = await service.track(IDENTIFIER)

        assert result.state == ResolutionState.FETCH_SUCCESS
        assert adapter.call_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_requests(self, clock):
        """测试并发请求互不干扰"""
        adapter = FakeAdapter(make_payload(), delay=0.01)
        service = build_service([make_descriptor("a", reliability=0.95)], {"a": adapter}, clock)

        results = await asyncio.gather(
            service.track("ABCD1234567"),
            service.track("EFGH7654321"),
            service.track("BK12345678"),
        )

        assert all(r.success for r in results)
        assert {r.data.identifier for r in results} == {"ABCD1234567", "EFGH7654321", "BK12345678"}

    @pytest.mark.asyncio
    async def test_execute_delegates_to_track(self, clock):
        service = build_service([make_descriptor("a")], {"a": FakeAdapter(make_payload())}, clock)
        result = await service.execute(IDENTIFIER)
        assert result.success

    def test_result_serialization(self, clock):
        """测试解析结果转换为字典"""
        service = build_service([make_descriptor("a")], {"a": FakeAdapter(make_payload())}, clock)
        result = asyncio.run(service.track(IDENTIFIER))

        data = result.to_dict()

        assert data["success"] is True
        assert data["state"] == "fetch_success"
        assert data["data"]["identifier_type"] == "container"
        assert data["data"]["timeline"][0]["timestamp"] == "2024-02-20T08:00:00+00:00"


class TestProviderHealth:
    """数据源健康测试"""

    def _report(self, descriptors):
        return GetProviderHealthUseCase(ProviderRegistry(descriptors)).execute()

    def test_unavailable_without_credentials(self):
        report = self._report([make_descriptor("a", has_credential=False)])
        assert report.overall_health == HealthStatus.UNAVAILABLE
        assert report.providers[0].available is False

    def test_healthy(self):
        report = self._report([
            make_descriptor("a", reliability=0.95),
            make_descriptor("b", reliability=0.88),
            make_descriptor("c", reliability=0.70, has_credential=False),
        ])
        assert report.overall_health == HealthStatus.HEALTHY

    def test_degraded_when_few_available(self):
        report = self._report([
            make_descriptor("a", reliability=0.95),
            make_descriptor("b", reliability=0.88, has_credential=False),
            make_descriptor("c", reliability=0.70, has_credential=False),
        ])
        assert report.overall_health == HealthStatus.DEGRADED

    def test_degraded_when_unreliable(self):
        report = self._report([
            make_descriptor("a", reliability=0.75),
            make_descriptor("b", reliability=0.78),
        ])
        assert report.overall_health == HealthStatus.DEGRADED

    def test_half_available_is_enough(self):
        report = self._report([
            make_descriptor("a", reliability=0.90),
            make_descriptor("b", reliability=0.90, has_credential=False),
        ])
        assert report.overall_health == HealthStatus.HEALTHY

    def test_lists_whole_catalog(self, clock):
        service = build_service(
            [make_descriptor("a"), make_descriptor("b", has_credential=False)],
            {"a": FakeAdapter(make_payload())},
            clock,
        )
        report = service.get_provider_health()
        assert [p.name for p in report.providers] == ["a", "b"]
        assert report.to_dict()["overall_health"] == "healthy"
