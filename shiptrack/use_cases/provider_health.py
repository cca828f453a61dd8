"""
数据源健康用例
"""

from shiptrack.domain.models import HealthStatus, ProviderHealth, ProviderHealthReport
from shiptrack.orchestrator.registry import ProviderRegistry
from shiptrack.use_cases.base import UseCase


HEALTHY_AVG_RELIABILITY = 0.8
HEALTHY_AVAILABLE_RATIO = 0.5


class GetProviderHealthUseCase(UseCase[ProviderHealthReport]):
    """
    汇总数据源健康状态

    - 没有任何已配置凭据的数据源：unavailable
    - 可用数据源平均可靠性 > 0.8 且可用数量至少占目录一半：healthy
    - 其余：degraded
    """

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    def execute(self) -> ProviderHealthReport:
        providers = [
            ProviderHealth(name=d.name, reliability=d.reliability, available=d.has_credential)
            for d in self.registry.all_providers()
        ]
        available = [p for p in providers if p.available]

        if not available:
            overall = HealthStatus.UNAVAILABLE
        else:
            avg_reliability = sum(p.reliability for p in available) / len(available)
            if (
                avg_reliability > HEALTHY_AVG_RELIABILITY
                and len(available) >= len(providers) * HEALTHY_AVAILABLE_RATIO
            ):
                overall = HealthStatus.HEALTHY
            else:
                overall = HealthStatus.DEGRADED

        return ProviderHealthReport(providers=providers, overall_health=overall)
