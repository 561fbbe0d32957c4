"""按 StresConfig 组装默认的 Producer 集合。"""

from __future__ import annotations

from dataclasses import dataclass

from stres_context.config.schema import StresConfig
from stres_context.producers.base import Producer
from stres_context.producers.guard import GuardProducer
from stres_context.producers.header import CombatHeaderProducer, HeaderProducer, WorldStateSource
from stres_context.producers.hud import HudProducer
from stres_context.producers.npc import NpcMemoryProducer, NpcPresenceTracker
from stres_context.producers.primer import ManifestCache, ManifestSource, PrimerProducer
from stres_context.producers.retrieval import DocumentSource, RetrievalProducer, StaticCorpus
from stres_context.producers.state import SessionState
from stres_context.producers.summary import LLMProvider, RollingSummarizer, SummaryProducer
from stres_context.tokenizer.estimator import TokenEstimator


@dataclass
class ProducerSet:
    """
    默认 Producer 集合以及宿主需要继续驱动的有状态部件。

    属性:
        producers: 按组件名顺序排列的 Producer
        summarizer: 滚动摘要器（宿主在消息事件中调用 record）
        npc_tracker: NPC 在场状态
        manifests: 世界清单缓存（没有清单来源时为 None）
    """

    producers: list[Producer]
    summarizer: RollingSummarizer
    npc_tracker: NpcPresenceTracker
    manifests: ManifestCache | None = None


def build_default_producers(
    config: StresConfig,
    session: SessionState,
    *,
    estimator: TokenEstimator | None = None,
    manifest_source: ManifestSource | None = None,
    world_source: WorldStateSource | None = None,
    summary_provider: LLMProvider | None = None,
    documents: DocumentSource | None = None,
    npc_tracker: NpcPresenceTracker | None = None,
) -> ProducerSet:
    """
    构造全部八个 Producer，共享同一个 BudgetConfig 和估算器。

    参数:
        config: 完整配置
        session: 宿主维护的会话状态
        estimator: Token 估算器（默认启发式）
        manifest_source: 世界清单来源
        world_source: 模拟世界状态来源
        summary_provider: 滚动摘要使用的 LLM
        documents: 检索候选来源（默认空语料）
        npc_tracker: 已注册 NPC 的在场追踪器
    """
    budget = config.budget
    estimator = estimator or TokenEstimator()
    manifests = (
        ManifestCache(manifest_source, ttl_seconds=config.primer.manifest_ttl_seconds)
        if manifest_source is not None
        else None
    )
    summarizer = RollingSummarizer(summary_provider, settings=config.summary)
    tracker = npc_tracker or NpcPresenceTracker(window_seconds=config.npc.presence_window_seconds)

    producers: list[Producer] = [
        GuardProducer(budget, session, template=config.guard.template, estimator=estimator),
        HeaderProducer(
            budget,
            session,
            template=config.header.template,
            cost=config.cost,
            world_source=world_source,
            estimator=estimator,
        ),
        PrimerProducer(budget, session, manifests, settings=config.primer, estimator=estimator),
        SummaryProducer(budget, summarizer, estimator=estimator),
        RetrievalProducer(
            budget,
            session,
            documents or StaticCorpus(),
            settings=config.rag,
            estimator=estimator,
        ),
        NpcMemoryProducer(budget, session, tracker, settings=config.npc, estimator=estimator),
        HudProducer(budget, session, prefix=config.hud.prefix, estimator=estimator),
        CombatHeaderProducer(budget, session, template=config.combat.template, estimator=estimator),
    ]
    return ProducerSet(
        producers=producers,
        summarizer=summarizer,
        npc_tracker=tracker,
        manifests=manifests,
    )
