"""
限流系统 - 数据源调用配额

每个数据源一个固定的一分钟窗口：
- 首次调用初始化窗口并计入本次调用
- 距窗口开始超过 60 秒则重置窗口
- 否则计数加一，计数不超过每分钟上限即放行

被拒绝的数据源直接跳过，不排队等待。
"""

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Any, Iterable, Optional

from shiptrack.domain.models import ProviderDescriptor


WINDOW_SECONDS = 60.0


@dataclass
class RateLimitWindow:
    """单个数据源的计数窗口"""
    count: int
    window_start: float


@dataclass
class RateLimitStats:
    """限流统计"""
    total_requests: int = 0
    allowed_requests: int = 0
    rejected_requests: int = 0

    @property
    def rejection_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.rejected_requests / self.total_requests

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "allowed_requests": self.allowed_requests,
            "rejected_requests": self.rejected_requests,
            "rejection_rate": round(self.rejection_rate * 100, 2),
        }


class RateLimitTracker:
    """
    数据源限流跟踪器

    检查与计数在同一把锁内完成，并发调用不会丢失计数。
    只执行每分钟上限；每小时上限仅作展示。
    """

    def __init__(
        self,
        descriptors: Iterable[ProviderDescriptor],
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        初始化跟踪器

        Args:
            descriptors: 数据源描述（提供每分钟上限）
            clock: 单调时钟（秒），测试时可注入
        """
        self._limits: Dict[str, int] = {
            d.name: d.rate_limit.requests_per_minute for d in descriptors
        }
        self._clock = clock
        self._windows: Dict[str, RateLimitWindow] = {}
        self._stats: Dict[str, RateLimitStats] = {}
        self._lock = Lock()

    def try_acquire(self, provider_name: str) -> bool:
        """
        尝试为一次调用占用配额

        Args:
            provider_name: 数据源名称

        Returns:
            是否放行（未知数据源一律拒绝）
        """
        limit = self._limits.get(provider_name)
        if limit is None:
            return False

        with self._lock:
            now = self._clock()
            stats = self._stats.setdefault(provider_name, RateLimitStats())
            stats.total_requests += 1

            window = self._windows.get(provider_name)
            if window is None or now - window.window_start > WINDOW_SECONDS:
                self._windows[provider_name] = RateLimitWindow(count=1, window_start=now)
                allowed = 1 <= limit
            else:
                window.count += 1
                allowed = window.count <= limit

            if allowed:
                stats.allowed_requests += 1
            else:
                stats.rejected_requests += 1
            return allowed

    def current_count(self, provider_name: str) -> int:
        """当前窗口内的计数（窗口已过期时为 0）"""
        with self._lock:
            window = self._windows.get(provider_name)
            if window is None or self._clock() - window.window_start > WINDOW_SECONDS:
                return 0
            return window.count

    def reset(self, provider_name: Optional[str] = None) -> None:
        """重置指定数据源（或全部）的窗口"""
        with self._lock:
            if provider_name is None:
                self._windows.clear()
                self._stats.clear()
            else:
                self._windows.pop(provider_name, None)
                self._stats.pop(provider_name, None)

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        """获取所有数据源的限流统计"""
        counts = {name: self.current_count(name) for name in self._limits}
        with self._lock:
            return {
                name: {
                    "limit_per_minute": limit,
                    "current_window_count": counts[name],
                    **self._stats.get(name, RateLimitStats()).to_dict(),
                }
                for name, limit in self._limits.items()
            }
