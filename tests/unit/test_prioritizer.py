"""
数据源排序单元测试
"""

import pytest

from shiptrack.config import build_descriptors
from shiptrack.domain.models import CostTier, IdentifierType
from shiptrack.orchestrator.prioritizer import ProviderPrioritizer
from tests.conftest import make_descriptor


class TestProviderPrioritizer:
    """ProviderPrioritizer 测试类"""

    @pytest.fixture
    def prioritizer(self):
        return ProviderPrioritizer()

    def test_bucket_order(self, prioritizer):
        """测试分组顺序：免费 → 高可靠付费 → 中等付费 → 免费增值 → 低可靠"""
        providers = [
            make_descriptor("low", reliability=0.70, cost_tier=CostTier.PAID),
            make_descriptor("freemium", reliability=0.75, cost_tier=CostTier.FREEMIUM),
            make_descriptor("paid-mid", reliability=0.85, cost_tier=CostTier.PAID),
            make_descriptor("paid-high", reliability=0.95, cost_tier=CostTier.PAID),
            make_descriptor("free", reliability=0.60, cost_tier=CostTier.FREE),
        ]
        ordered = [p.name for p in prioritizer.prioritize(providers)]
        assert ordered == ["free", "paid-high", "paid-mid", "freemium", "low"]

    def test_reliability_descending_within_bucket(self, prioritizer):
        """测试组内按可靠性降序"""
        providers = [
            make_descriptor("b", reliability=0.82),
            make_descriptor("a", reliability=0.88),
            make_descriptor("c", reliability=0.85),
        ]
        assert [p.name for p in prioritizer.prioritize(providers)] == ["a", "c", "b"]

    def test_each_provider_once(self, prioritizer):
        """测试免费增值聚合商只出现一次"""
        providers = [
            make_descriptor("agg", reliability=0.88, cost_tier=CostTier.FREEMIUM, is_aggregator=True),
            make_descriptor("carrier", reliability=0.95),
        ]
        ordered = [p.name for p in prioritizer.prioritize(providers)]
        assert ordered == ["carrier", "agg"]

    def test_deterministic_with_ties(self, prioritizer):
        """测试可靠性相同时结果确定"""
        providers = [
            make_descriptor("zeta", reliability=0.85),
            make_descriptor("alpha", reliability=0.85),
            make_descriptor("mu", reliability=0.85),
        ]
        first = [p.name for p in prioritizer.prioritize(providers)]
        second = [p.name for p in prioritizer.prioritize(list(reversed(providers)))]
        assert first == second == ["alpha", "mu", "zeta"]

    def test_filters_by_identifier_type(self, prioritizer):
        """测试按追踪号类型过滤"""
        providers = [
            make_descriptor("vessel-only", supported_types={IdentifierType.VESSEL}),
            make_descriptor("container", supported_types={IdentifierType.CONTAINER}),
        ]
        ordered = prioritizer.prioritize(providers, IdentifierType.CONTAINER)
        assert [p.name for p in ordered] == ["container"]

    def test_sorted_order_property(self, prioritizer):
        """测试输出满足分组单调和组内降序"""
        descriptors, _ = build_descriptors(env={})
        ordered = prioritizer.prioritize(descriptors)

        def bucket(p):
            if p.cost_tier == CostTier.FREE:
                return 0
            if p.cost_tier == CostTier.PAID and p.reliability >= 0.90:
                return 1
            if p.cost_tier == CostTier.PAID and p.reliability >= 0.80:
                return 2
            if p.cost_tier == CostTier.FREEMIUM:
                return 3
            if p.is_aggregator:
                return 4
            return 5

        buckets = [bucket(p) for p in ordered]
        assert buckets == sorted(buckets)
        for i in range(len(ordered) - 1):
            if buckets[i] == buckets[i + 1]:
                assert ordered[i].reliability >= ordered[i + 1].reliability
        assert len({p.name for p in ordered}) == len(ordered)

    def test_catalog_order(self, prioritizer):
        """测试完整目录的排序结果"""
        descriptors, _ = build_descriptors(env={})
        ordered = [p.name for p in prioritizer.prioritize(descriptors)]
        assert ordered[0] == "track-trace"
        assert ordered[1:3] == ["maersk", "project44"]
        assert ordered[-2:] == ["vessel-finder", "marine-traffic"]
