"""
滚动摘要。

RollingSummarizer 记录聊天消息并统计用户轮次，每 every_turns 个用户轮次
让 LLM 把最近 window_size 条消息（连同上一条摘要）压缩成新的摘要。
摘要生成在消息事件里完成；SummaryProducer 只读取最新一条。
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Protocol

from stres_context.config.defaults import SUMMARIES
from stres_context.config.schema import BudgetConfig, SummaryConfig
from stres_context.errors import ProducerError
from stres_context.models.prediction import SlotSpec
from stres_context.models.result import Result
from stres_context.producers.base import BaseProducer
from stres_context.producers.state import ChatMessage
from stres_context.tokenizer.estimator import TokenEstimator

logger = logging.getLogger(__name__)


class LLMProvider(Protocol):
    """LLM 提供者协议 — 解耦具体的 LLM 客户端。"""

    async def generate(self, prompt: str, max_tokens: int = 250) -> str:
        ...


class RollingSummarizer:
    """
    有状态的滚动摘要器。

    用法::

        summarizer = RollingSummarizer(provider=my_llm)
        result = await summarizer.record(ChatMessage("user", "We ride north."))
        summarizer.latest   # 最新摘要，没有时为 ""

    属性:
        settings: 轮次间隔、窗口大小和保留条数
        max_summary_tokens: 传给 LLM 的输出上限
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        settings: SummaryConfig | None = None,
        max_summary_tokens: int = 250,
    ) -> None:
        self._provider = provider
        self.settings = settings or SummaryConfig()
        self.max_summary_tokens = max_summary_tokens
        self._messages: deque[ChatMessage] = deque(maxlen=self.settings.window_size)
        self._summaries: deque[str] = deque(maxlen=self.settings.max_items)
        self._user_turns = 0

    @property
    def latest(self) -> str:
        return self._summaries[-1] if self._summaries else ""

    @property
    def summaries(self) -> list[str]:
        return list(self._summaries)

    @property
    def user_turns(self) -> int:
        return self._user_turns

    def reset(self) -> None:
        """清空消息窗口、摘要和轮次计数（换聊天时调用）。"""
        self._messages.clear()
        self._summaries.clear()
        self._user_turns = 0

    async def record(self, message: ChatMessage) -> Result[str] | None:
        """
        记录一条消息；到达轮次间隔时生成摘要。

        返回:
            本次没有生成摘要时为 None；否则为生成结果（失败时带 ProducerError）
        """
        if not message.text.strip():
            return None
        self._messages.append(message)
        if not message.is_user:
            return None

        self._user_turns += 1
        if self._user_turns % self.settings.every_turns != 0:
            return None
        return await self.summarize_now()

    async def summarize_now(self) -> Result[str]:
        """立即对当前窗口生成摘要。失败时保留已有摘要。"""
        if self._provider is None:
            return Result.failure(
                ProducerError(
                    what="滚动摘要生成失败。",
                    why="未配置 LLM 提供者。",
                    how="传入 LLMProvider 实例以启用滚动摘要。",
                    component=SUMMARIES,
                )
            )
        if not self._messages:
            return Result.success(self.latest)

        try:
            summary = (await self._provider.generate(
                self._build_prompt(), max_tokens=self.max_summary_tokens
            )).strip()
        except Exception as e:  # LLM 调用失败不影响聊天，保留旧摘要
            logger.warning("滚动摘要生成失败：%s，保留上一条摘要。", e)
            return Result.failure(
                ProducerError(
                    what="滚动摘要生成失败。",
                    why=f"{type(e).__name__}: {e}",
                    how="检查 LLM 提供者配置；下一个间隔会自动重试。",
                    component=SUMMARIES,
                )
            )

        if summary:
            self._summaries.append(summary)
            logger.debug("滚动摘要已更新（第 %d 个用户轮次）", self._user_turns)
        return Result.success(summary)

    def _build_prompt(self) -> str:
        transcript = "\n".join(f"{m.role}: {m.text.strip()}" for m in self._messages)
        previous = self.latest
        if previous:
            return (
                "Update the running story summary with the new messages.\n\n"
                f"Previous summary:\n{previous}\n\n"
                f"New messages:\n{transcript}\n\n"
                "Write the updated summary as 2-5 short bullet points:\n"
            )
        return (
            "Summarize the key events of this roleplay conversation.\n"
            "Output 2-5 short bullet points.\n\n"
            f"Messages:\n{transcript}\n\nSummary:\n"
        )


class SummaryProducer(BaseProducer):
    """输出最新一条滚动摘要。"""

    name = SUMMARIES

    def __init__(
        self,
        config: BudgetConfig,
        summarizer: RollingSummarizer,
        estimator: TokenEstimator | None = None,
        slot: SlotSpec | None = None,
    ) -> None:
        super().__init__(config, estimator, slot)
        self.summarizer = summarizer

    async def render(self) -> str:
        return self.summarizer.latest
