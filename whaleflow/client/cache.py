import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class TTLCache:
    """参考数据缓存 (每个 key 单槽位，过期后惰性刷新，刷新失败沿用旧值)"""

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._slots: dict[str, tuple[float, Any]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _fresh(self, key: str) -> bool:
        slot = self._slots.get(key)
        return slot is not None and self.clock() - slot[0] < self.ttl_seconds

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        if self._fresh(key):
            return self._slots[key][1]

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # 等锁期间可能已被其他任务刷新
            if self._fresh(key):
                return self._slots[key][1]
            try:
                value = await loader()
            except Exception as e:
                stale = self._slots.get(key)
                if stale is None:
                    raise
                logger.warning(f"Refresh of {key} failed, serving stale value: {e}")
                return stale[1]
            self._slots[key] = (self.clock(), value)
            return value

    def clear(self) -> None:
        self._slots.clear()
