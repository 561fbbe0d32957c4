"""
短 TTL 的异步缓存。

世界清单和模拟世界状态都通过网络获取，每轮都拉取代价太高。
TtlCache 在有效期内直接返回上次的值；过期后重新加载，
加载失败（异常或返回 None）时保留上一次成功的值并记录警告。
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TtlCache(Generic[T]):
    """
    异步加载 + TTL 过期。

    用法::

        cache = TtlCache(source.fetch, ttl_seconds=15.0, name="manifest")
        manifest = await cache.get()

    属性:
        generation: 成功加载的次数（值变化时递增），供下游缓存渲染结果
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[T | None]],
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        self._loader = loader
        self._ttl = max(0.0, ttl_seconds)
        self._clock = clock
        self._name = name
        self._value: T | None = None
        self._fetched_at: float | None = None
        self.generation = 0

    @property
    def value(self) -> T | None:
        return self._value

    def is_fresh(self) -> bool:
        if self._value is None or self._fetched_at is None:
            return False
        return (self._clock() - self._fetched_at) <= self._ttl

    async def get(self) -> T | None:
        """有效期内返回缓存值，否则重新加载。"""
        if self.is_fresh():
            return self._value

        try:
            loaded = await self._loader()
        except Exception as e:  # 网络类失败保留旧值，重试交给下一次过期
            logger.warning("[%s] 加载失败，沿用上一次的值。错误：%s", self._name, e)
            return self._value

        if loaded is None:
            return self._value

        self._value = loaded
        self._fetched_at = self._clock()
        self.generation += 1
        return loaded

    def invalidate(self) -> None:
        """标记为过期，下一次 get() 会重新加载。"""
        self._fetched_at = None
