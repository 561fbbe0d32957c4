"""
StresContext — 顶层入口。

把配置、会话状态、八个 Producer、编排器、注入通道和遥测接在一起，
宿主只需要在聊天事件里调用 on_message()。

最简用法::

    from stres_context import StresContext

    stres = StresContext()
    stres.session.persona_name = "Aria"
    report = await stres.on_message("user", "We ride for Ravenhold at dawn.")
    stres.sink.text("STRES_GUARD")

带外部数据源::

    stres = StresContext(
        config_path="stres_context.yaml",
        sink=host_sink,
        model="gpt-4o",
        manifest_source=manifest_api,
        summary_provider=llm,
    )
    stres.attach(host_events)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from stres_context.config.editor import BudgetConfigEditor
from stres_context.config.loader import load_config
from stres_context.config.schema import StresConfig
from stres_context.models.report import RunReport
from stres_context.observability.telemetry import TelemetryLog
from stres_context.pipeline.orchestrator import ContextOrchestrator
from stres_context.pipeline.sink import InjectionSink, MemorySink
from stres_context.pipeline.triggers import (
    CHAT_CHANGED,
    HOST_EVENTS,
    MANUAL,
    MESSAGE_RECEIVED,
    MESSAGE_SENT,
    EventSource,
)
from stres_context.producers.factory import build_default_producers
from stres_context.producers.header import WorldStateSource
from stres_context.producers.npc import NpcPresenceTracker
from stres_context.producers.primer import ManifestSource
from stres_context.producers.retrieval import DocumentSource
from stres_context.producers.state import ChatMessage, SessionState
from stres_context.producers.summary import LLMProvider
from stres_context.tokenizer.estimator import TokenEstimator
from stres_context.tokenizer.registry import get_tokenizer

logger = logging.getLogger(__name__)


class StresContext:
    """
    STRES Context 顶层入口。

    参数:
        config: 已加载的配置；None 时从 config_path 或默认搜索路径加载
        config_path: YAML 配置文件路径
        sink: 注入通道（默认 MemorySink）
        model: 目标模型名，用于选择精确 Tokenizer；None 时只用字符启发式
        manifest_source: 世界清单来源
        world_source: 模拟世界状态来源
        summary_provider: 滚动摘要使用的 LLM
        documents: 检索候选来源
        npc_tracker: 已注册 NPC 的在场追踪器

    属性:
        config / session / sink / editor / orchestrator / telemetry / summarizer / npc_tracker
    """

    def __init__(
        self,
        config: StresConfig | None = None,
        config_path: str | Path | None = None,
        *,
        sink: InjectionSink | None = None,
        model: str | None = None,
        manifest_source: ManifestSource | None = None,
        world_source: WorldStateSource | None = None,
        summary_provider: LLMProvider | None = None,
        documents: DocumentSource | None = None,
        npc_tracker: NpcPresenceTracker | None = None,
    ) -> None:
        self.config = config if config is not None else load_config(config_path)
        self.session = SessionState()
        self.sink: InjectionSink = sink if sink is not None else MemorySink()
        self.estimator = TokenEstimator(get_tokenizer(model) if model else None)

        producer_set = build_default_producers(
            self.config,
            self.session,
            estimator=self.estimator,
            manifest_source=manifest_source,
            world_source=world_source,
            summary_provider=summary_provider,
            documents=documents,
            npc_tracker=npc_tracker,
        )
        self.producers = producer_set.producers
        self.summarizer = producer_set.summarizer
        self.npc_tracker = producer_set.npc_tracker
        self.manifests = producer_set.manifests

        telemetry_config = self.config.telemetry
        self.telemetry = TelemetryLog(keep=telemetry_config.keep) if telemetry_config.enabled else None
        self.orchestrator = ContextOrchestrator(
            self.config.budget,
            self.producers,
            self.sink,
            telemetry=self.telemetry,
        )
        self.editor = BudgetConfigEditor(self.config.budget)

        logger.info(
            "StresContext 初始化完成：profile=%s limit=%d tokenizer=%s",
            self.config.budget.profile,
            self.config.budget.limit,
            self.estimator.name,
        )

    async def run(self, trigger: str = MANUAL) -> RunReport:
        return await self.orchestrator.run(trigger=trigger)

    def run_sync(self, trigger: str = MANUAL) -> RunReport:
        """同步运行一次（不能在已运行的事件循环中调用）。"""
        return asyncio.run(self.run(trigger))

    async def on_message(self, role: str, text: str) -> RunReport:
        """
        记录一条聊天消息、推进滚动摘要，然后运行一次。

        参数:
            role: "user" 或 "assistant"
            text: 消息文本
        """
        message = ChatMessage(role=role, text=text)
        self.session.add_message(message)
        await self.summarizer.record(message)
        trigger = MESSAGE_SENT if message.is_user else MESSAGE_RECEIVED
        return await self.run(trigger)

    async def on_chat_changed(self) -> RunReport:
        """切换聊天：清空消息、摘要和 NPC 在场状态后运行一次。"""
        self.session.messages.clear()
        self.summarizer.reset()
        self.npc_tracker.clear()
        if self.manifests is not None:
            self.manifests.invalidate()
        return await self.run(CHAT_CHANGED)

    def attach(self, source: EventSource) -> None:
        """订阅宿主事件（message_sent / message_received / generation_ended / chat_changed）。"""
        self.orchestrator.attach(source, HOST_EVENTS)

    def detach(self) -> None:
        self.orchestrator.detach()
