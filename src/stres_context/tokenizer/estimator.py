"""
TokenEstimator — 永不失败的 Token 估算。

估算的契约只有一条：对任意输入返回非负整数。精确计数器不可用、
抛出异常或返回非法值时，静默回退到 ``ceil(len / 4)``，只记录一条警告。
"""

from __future__ import annotations

import inspect
import logging

from stres_context.tokenizer.fallback import CharBasedCounter
from stres_context.tokenizer.protocol import TokenCounter

logger = logging.getLogger(__name__)

_HEURISTIC = CharBasedCounter()


def estimate_heuristic(text: str | None) -> int:
    """纯启发式估算：空文本 0，否则 ceil(字符数 / 4)。"""
    return _HEURISTIC.count(text)


class TokenEstimator:
    """
    Token 估算器。

    用法::

        estimator = TokenEstimator()                      # 只用启发式
        estimator = TokenEstimator(get_tokenizer("gpt-4o"))
        tokens = await estimator.estimate(text)

    属性:
        counter: 可选的精确计数器（count 可以是同步或异步的）
    """

    def __init__(self, counter: TokenCounter | None = None) -> None:
        self.counter = counter
        self._fallback_count = 0

    @property
    def fallback_count(self) -> int:
        """精确计数失败、回退到启发式的累计次数。"""
        return self._fallback_count

    @property
    def name(self) -> str:
        if self.counter is None:
            return _HEURISTIC.name
        return self.counter.name

    async def estimate(self, text: str | None) -> int:
        """
        估算文本的 Token 数。

        参数:
            text: 任意文本，None 视为空

        返回:
            非负整数
        """
        if not text:
            return 0
        text = str(text)

        if self.counter is None:
            return estimate_heuristic(text)

        try:
            counted = self.counter.count(text)
            if inspect.isawaitable(counted):
                counted = await counted
        except Exception as e:  # 任何精确计数错误都回退，不向上传播
            return self._fall_back(text, f"{type(e).__name__}: {e}")

        if isinstance(counted, bool) or not isinstance(counted, int) or counted < 0:
            return self._fall_back(text, f"非法计数值 {counted!r}")
        return counted

    def estimate_sync(self, text: str | None) -> int:
        """
        同步估算，供 CLI 和测试使用。

        精确计数器是异步的时直接使用启发式。
        """
        if not text:
            return 0
        text = str(text)
        if self.counter is None:
            return estimate_heuristic(text)
        if inspect.iscoroutinefunction(self.counter.count):
            return estimate_heuristic(text)
        try:
            counted = self.counter.count(text)
        except Exception as e:
            return self._fall_back(text, f"{type(e).__name__}: {e}")
        if inspect.isawaitable(counted):
            if inspect.iscoroutine(counted):
                counted.close()
            return estimate_heuristic(text)
        if isinstance(counted, bool) or not isinstance(counted, int) or counted < 0:
            return self._fall_back(text, f"非法计数值 {counted!r}")
        return counted

    def _fall_back(self, text: str, reason: str) -> int:
        self._fallback_count += 1
        logger.warning(
            "精确计数器 %s 不可用，回退到字符启发式。原因：%s",
            self.counter.name if self.counter is not None else "-",
            reason,
        )
        return estimate_heuristic(text)
