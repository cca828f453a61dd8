"""
指标系统 - 追踪管道的运行指标

提供：
- 解析请求计数（按终止状态）
- 数据源调用计数（按数据源和结果）
- 解析耗时分布
"""

from collections import defaultdict
from threading import Lock, RLock
from typing import Dict, Any, Optional, List, Tuple


LabelKey = Tuple[Tuple[str, str], ...]


def _label_key(labels: Dict[str, str]) -> LabelKey:
    return tuple(sorted(labels.items()))


class Counter:
    """计数器 - 只增不减，可按标签拆分"""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._values: Dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1.0, **labels: str):
        """增加计数"""
        with self._lock:
            self._values[_label_key(labels)] += value

    def get(self, **labels: str) -> float:
        """获取计数；不带标签时返回所有标签的总和"""
        with self._lock:
            if not labels:
                return sum(self._values.values())
            return self._values.get(_label_key(labels), 0.0)

    def by_label(self) -> List[Dict[str, Any]]:
        """按标签展开的计数"""
        with self._lock:
            return [
                {"labels": dict(key), "value": value}
                for key, value in self._values.items()
            ]


class Gauge:
    """仪表盘 - 可增可减的指标"""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._value = 0.0
        self._lock = Lock()

    def set(self, value: float):
        with self._lock:
            self._value = value

    def inc(self, value: float = 1.0):
        with self._lock:
            self._value += value

    def dec(self, value: float = 1.0):
        with self._lock:
            self._value -= value

    def get(self) -> float:
        with self._lock:
            return self._value


class Histogram:
    """直方图 - 记录值的分布"""

    DEFAULT_BUCKETS = [0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30]

    def __init__(
        self,
        name: str,
        description: str = "",
        buckets: Optional[List[float]] = None
    ):
        self.name = name
        self.description = description
        self.buckets = sorted(buckets or self.DEFAULT_BUCKETS)
        self._counts: Dict[float, int] = defaultdict(int)
        self._sum = 0.0
        self._count = 0
        self._lock = RLock()

    def observe(self, value: float):
        """记录一个观察值（计入第一个不小于它的桶）"""
        with self._lock:
            self._sum += value
            self._count += 1
            for bucket in self.buckets:
                if value <= bucket:
                    self._counts[bucket] += 1
                    break

    def get_percentile(self, p: float) -> float:
        """获取百分位数（桶上界近似）"""
        with self._lock:
            if self._count == 0:
                return 0.0
            target = self._count * p / 100
            cumulative = 0
            for bucket in self.buckets:
                cumulative += self._counts[bucket]
                if cumulative >= target:
                    return bucket
            return self.buckets[-1]

    def get_stats(self) -> Dict[str, float]:
        with self._lock:
            return {
                "count": self._count,
                "sum": self._sum,
                "avg": self._sum / self._count if self._count > 0 else 0,
                "p50": self.get_percentile(50),
                "p95": self.get_percentile(95),
            }


class MetricsRegistry:
    """指标注册表 - 管理所有指标"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._metrics: Dict[str, Any] = {}
        self._lock = Lock()
        self._initialized = True

        self._setup_default_metrics()

    def _setup_default_metrics(self):
        """设置默认指标"""
        self.register_counter(
            "shiptrack_resolutions_total",
            "按终止状态统计的解析请求数"
        )
        self.register_counter(
            "shiptrack_provider_attempts_total",
            "按数据源和结果统计的调用次数"
        )
        self.register_counter(
            "shiptrack_cache_lookups_total",
            "按缓存层和命中情况统计的查询次数"
        )
        self.register_histogram(
            "shiptrack_resolution_duration_seconds",
            "解析请求耗时",
        )
        self.register_histogram(
            "shiptrack_provider_duration_seconds",
            "单个数据源调用耗时",
        )
        self.register_gauge(
            "shiptrack_active_resolutions",
            "当前进行中的解析请求数"
        )

    def register_counter(self, name: str, description: str = "") -> Counter:
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Counter(name, description)
            return self._metrics[name]

    def register_gauge(self, name: str, description: str = "") -> Gauge:
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Gauge(name, description)
            return self._metrics[name]

    def register_histogram(
        self,
        name: str,
        description: str = "",
        buckets: Optional[List[float]] = None
    ) -> Histogram:
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Histogram(name, description, buckets)
            return self._metrics[name]

    def get(self, name: str) -> Any:
        with self._lock:
            return self._metrics.get(name)

    def get_all_metrics(self) -> Dict[str, Any]:
        """获取所有指标的当前值"""
        result = {}
        with self._lock:
            for name, metric in self._metrics.items():
                if isinstance(metric, Counter):
                    result[name] = {
                        "type": "counter",
                        "value": metric.get(),
                        "series": metric.by_label(),
                    }
                elif isinstance(metric, Gauge):
                    result[name] = {"type": "gauge", "value": metric.get()}
                elif isinstance(metric, Histogram):
                    result[name] = {"type": "histogram", **metric.get_stats()}
        return result


# 全局指标注册表
_registry = None


def get_metrics_registry() -> MetricsRegistry:
    """获取全局指标注册表"""
    global _registry
    if _registry is None:
        _registry = MetricsRegistry()
    return _registry


def increment_counter(name: str, value: float = 1.0, **labels: str):
    """增加计数器"""
    counter = get_metrics_registry().get(name)
    if counter:
        counter.inc(value, **labels)


def record_histogram(name: str, value: float):
    """记录直方图值"""
    histogram = get_metrics_registry().get(name)
    if histogram:
        histogram.observe(value)


def get_gauge(name: str) -> Optional[Gauge]:
    return get_metrics_registry().get(name)
