"""
内存键值存储适配器 - 实现 KeyValueStorePort

单进程部署使用；需要多实例共享时替换为外部存储的适配器即可。
"""

import time
from typing import Any, Callable, Dict, Optional

from shiptrack.infrastructure.cache import TTLCache
from shiptrack.ports.interfaces import KeyValueStorePort


class InMemoryKeyValueStore(KeyValueStorePort):
    """基于 TTLCache 的键值存储"""

    def __init__(
        self,
        default_ttl: int = 3600,
        max_size: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache: TTLCache[Any] = TTLCache(
            default_ttl=default_ttl, max_size=max_size, clock=clock
        )

    def get(self, key: str) -> Optional[Any]:
        return self._cache.get(key)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._cache.set(key, value, ttl=ttl)

    def delete(self, key: str) -> bool:
        return self._cache.delete(key)

    def clear(self) -> None:
        self._cache.clear()

    def get_stats_dict(self) -> Dict[str, Any]:
        return self._cache.get_stats_dict()
