"""
Producer — 每类上下文片段的候选文本与成本预测。
"""

from stres_context.producers.base import BaseProducer, Producer
from stres_context.producers.cache import TtlCache
from stres_context.producers.factory import ProducerSet, build_default_producers
from stres_context.producers.guard import GuardProducer
from stres_context.producers.header import (
    CombatHeaderProducer,
    HeaderProducer,
    WorldStateSource,
    render_scene_header,
)
from stres_context.producers.hud import HudProducer
from stres_context.producers.npc import (
    NameMatcher,
    NpcMemoryProducer,
    NpcPresenceTracker,
    NpcProfile,
    WordBoundaryMatcher,
    render_npc,
)
from stres_context.producers.primer import (
    ManifestCache,
    ManifestSource,
    PrimerProducer,
    WorldManifest,
)
from stres_context.producers.retrieval import (
    DocumentSource,
    LoreDocument,
    RetrievalHit,
    RetrievalProducer,
    StaticCorpus,
    rank_documents,
)
from stres_context.producers.state import (
    ChatMessage,
    HudEntry,
    ScenarioHeader,
    SessionState,
    WorldState,
)
from stres_context.producers.summary import LLMProvider, RollingSummarizer, SummaryProducer

__all__ = [
    "BaseProducer",
    "ChatMessage",
    "CombatHeaderProducer",
    "DocumentSource",
    "GuardProducer",
    "HeaderProducer",
    "HudEntry",
    "HudProducer",
    "LLMProvider",
    "LoreDocument",
    "ManifestCache",
    "ManifestSource",
    "NameMatcher",
    "NpcMemoryProducer",
    "NpcPresenceTracker",
    "NpcProfile",
    "PrimerProducer",
    "Producer",
    "ProducerSet",
    "RetrievalHit",
    "RetrievalProducer",
    "RollingSummarizer",
    "ScenarioHeader",
    "SessionState",
    "StaticCorpus",
    "SummaryProducer",
    "TtlCache",
    "WordBoundaryMatcher",
    "WorldManifest",
    "WorldState",
    "build_default_producers",
    "rank_documents",
    "render_npc",
    "render_scene_header",
]
