"""
数据源排序 - 先便宜可靠的，聚合商兜底
"""

from typing import Callable, List, Optional, Sequence, Tuple

from shiptrack.domain.models import CostTier, IdentifierType, ProviderDescriptor


Bucket = Tuple[str, Callable[[ProviderDescriptor], bool]]

# 按顺序匹配，数据源归入第一个匹配的分组
BUCKETS: Sequence[Bucket] = (
    ("free", lambda p: p.cost_tier == CostTier.FREE),
    ("paid_high", lambda p: p.cost_tier == CostTier.PAID and p.reliability >= 0.90),
    ("paid_medium", lambda p: p.cost_tier == CostTier.PAID and 0.80 <= p.reliability < 0.90),
    ("freemium", lambda p: p.cost_tier == CostTier.FREEMIUM),
    ("aggregator", lambda p: p.is_aggregator),
    ("low_reliability", lambda p: p.reliability < 0.80 and not p.is_aggregator),
)


def _by_reliability(provider: ProviderDescriptor):
    return (-provider.reliability, provider.name)


class ProviderPrioritizer:
    """
    数据源排序器

    分组顺序：
    1. 免费
    2. 付费且可靠性 ≥ 0.90
    3. 付费且可靠性 0.80 - 0.90
    4. 免费增值
    5. 聚合商
    6. 其余可靠性 < 0.80 的非聚合商

    组内按可靠性降序，可靠性相同时按名称排序，保证结果确定。
    不属于任何分组的数据源不参与。
    """

    def prioritize(
        self,
        providers: Sequence[ProviderDescriptor],
        identifier_type: Optional[IdentifierType] = None,
    ) -> List[ProviderDescriptor]:
        candidates = [p for p in providers if p.supports(identifier_type)]

        ordered: List[ProviderDescriptor] = []
        seen = set()
        for _, predicate in BUCKETS:
            group = [p for p in candidates if p.name not in seen and predicate(p)]
            group.sort(key=_by_reliability)
            for provider in group:
                seen.add(provider.name)
                ordered.append(provider)
        return ordered
