"""
缓存系统 - 追踪数据缓存

提供：
- 内存缓存（LRU + TTL，惰性过期）
- 原始响应缓存（按数据源结果，15 分钟）
- 货运记录缓存（合并结果，按数据年龄分层）
- 缓存命中率统计
"""

import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from shiptrack.domain.models import (
    IdentifierType,
    RawProviderResult,
    ShipmentRecord,
)
from shiptrack.infrastructure.metrics import increment_counter
from shiptrack.ports.interfaces import KeyValueStorePort, TimePort


T = TypeVar('T')

RESPONSE_CACHE_TTL = 15 * 60           # 原始响应缓存 15 分钟
SHIPMENT_NORMAL_TTL = 24 * 60 * 60     # 货运记录视为可用的最长年龄 24 小时
SHIPMENT_RETENTION_TTL = 7 * 24 * 60 * 60  # 货运记录保留 7 天（极旧数据兜底）


def cache_key(identifier: str, identifier_type: Optional[IdentifierType] = None) -> str:
    """生成 (追踪号, 类型) 的缓存键，未指定类型时使用 auto"""
    type_part = identifier_type.value if identifier_type else "auto"
    return f"{identifier}-{type_part}"


@dataclass
class CacheEntry(Generic[T]):
    """缓存条目"""
    value: T
    expires_at: float
    created_at: float
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def touch(self) -> None:
        """记录命中"""
        self.hits += 1


@dataclass
class CacheStats:
    """缓存统计"""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        """命中率"""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "hit_rate": round(self.hit_rate * 100, 2),
        }


class TTLCache(Generic[T]):
    """
    LRU + TTL 内存缓存

    支持：
    - 最大容量限制（超出时淘汰最久未使用的条目）
    - 读取时惰性过期
    - 线程安全（并发写入以最后一次为准）
    - 统计信息
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        初始化缓存

        Args:
            default_ttl: 默认 TTL（秒）
            max_size: 最大条目数
            clock: 单调时钟（测试时可注入）
        """
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._cache: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._lock = RLock()
        self._stats = CacheStats()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._cache.get(key)

            if entry is None:
                self._stats.misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._stats.misses += 1
                self._stats.size = len(self._cache)
                return None

            self._cache.move_to_end(key)
            entry.touch()
            self._stats.hits += 1
            return entry.value

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """
        写入缓存值

        Args:
            key: 缓存键
            value: 缓存值
            ttl: 过期时间（秒），None 使用默认值
        """
        if ttl is None:
            ttl = self.default_ttl

        with self._lock:
            now = self._clock()
            if key in self._cache:
                del self._cache[key]

            while len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)
                self._stats.evictions += 1

            self._cache[key] = CacheEntry(
                value=value,
                expires_at=now + ttl,
                created_at=now,
            )
            self._stats.size = len(self._cache)

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                self._stats.size = len(self._cache)
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._stats.size = 0

    def cleanup_expired(self) -> int:
        """
        清理过期条目

        Returns:
            清理的条目数
        """
        with self._lock:
            now = self._clock()
            expired_keys = [k for k, v in self._cache.items() if v.is_expired(now)]
            for key in expired_keys:
                del self._cache[key]

            self._stats.size = len(self._cache)
            return len(expired_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            self._stats.size = len(self._cache)
            return self._stats

    def get_stats_dict(self) -> Dict[str, Any]:
        return self.stats.to_dict()


class ResponseCache:
    """原始响应缓存 - 单个数据源的成功结果，短 TTL"""

    def __init__(
        self,
        ttl: float = RESPONSE_CACHE_TTL,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self._cache: TTLCache[RawProviderResult] = TTLCache(
            default_ttl=ttl, max_size=max_size, clock=clock
        )

    def get(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType] = None,
    ) -> Optional[RawProviderResult]:
        result = self._cache.get(cache_key(identifier, identifier_type))
        increment_counter(
            "shiptrack_cache_lookups_total",
            layer="response",
            result="hit" if result is not None else "miss",
        )
        return result

    def set(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        result: RawProviderResult,
    ) -> None:
        self._cache.set(cache_key(identifier, identifier_type), result, ttl=self.ttl)

    def clear(self) -> None:
        self._cache.clear()

    def get_stats_dict(self) -> Dict[str, Any]:
        return self._cache.get_stats_dict()


class ShipmentCache:
    """
    货运记录缓存 - 按数据年龄分层

    记录保存在通用键值存储中，保留期（默认 7 天）内都能取回：
    - get(): 年龄小于正常 TTL（默认 24 小时）的记录
    - get_stale(): 保留期内的任何记录，用于实时获取失败后的兜底

    数据年龄按记录的 last_updated 与当前时间计算，向下取整到分钟。
    """

    KEY_PREFIX = "shipment:"

    def __init__(
        self,
        store: KeyValueStorePort,
        time_port: TimePort,
        normal_ttl: int = SHIPMENT_NORMAL_TTL,
        retention_ttl: int = SHIPMENT_RETENTION_TTL,
    ):
        self.store = store
        self.time_port = time_port
        self.normal_ttl = normal_ttl
        self.retention_ttl = retention_ttl

    def _key(self, identifier: str, identifier_type: Optional[IdentifierType]) -> str:
        return self.KEY_PREFIX + cache_key(identifier, identifier_type)

    def age_minutes(self, record: ShipmentRecord) -> int:
        """记录年龄（分钟，向下取整，不小于 0）"""
        return self._age_minutes(record.last_updated, self.time_port.get_current_datetime())

    @staticmethod
    def _age_minutes(last_updated: datetime, now: datetime) -> int:
        seconds = (now - last_updated).total_seconds()
        return max(0, int(math.floor(seconds / 60)))

    def get(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType] = None,
    ) -> Optional[ShipmentRecord]:
        record = self.store.get(self._key(identifier, identifier_type))
        if record is not None and self.age_minutes(record) * 60 >= self.normal_ttl:
            record = None
        increment_counter(
            "shiptrack_cache_lookups_total",
            layer="shipment",
            result="hit" if record is not None else "miss",
        )
        return record

    def get_stale(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType] = None,
    ) -> Optional[ShipmentRecord]:
        record = self.store.get(self._key(identifier, identifier_type))
        increment_counter(
            "shiptrack_cache_lookups_total",
            layer="stale",
            result="hit" if record is not None else "miss",
        )
        return record

    def set(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType],
        record: ShipmentRecord,
    ) -> None:
        self.store.set(self._key(identifier, identifier_type), record, ttl=self.retention_ttl)

    def delete(
        self,
        identifier: str,
        identifier_type: Optional[IdentifierType] = None,
    ) -> bool:
        return self.store.delete(self._key(identifier, identifier_type))

    def clear(self) -> None:
        self.store.clear()
