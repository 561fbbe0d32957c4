"""
NPC 记忆。

激活规则为"被提及或被标记在场"：NpcPresenceTracker 扫描最近的聊天消息，
用 NameMatcher 找出被提到的 NPC 并记下提及时间。窗口内被提及
或被显式标记在场的 NPC 视为在场，最多取 max_npcs 个
（显式标记优先，其次按最近提及排序）。
"""

from __future__ import annotations

import logging
import re
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from stres_context.config.defaults import NPC
from stres_context.config.schema import BudgetConfig, NpcConfig
from stres_context.models.prediction import SlotSpec
from stres_context.producers.base import BaseProducer
from stres_context.producers.state import ChatMessage, SessionState
from stres_context.tokenizer.estimator import TokenEstimator

logger = logging.getLogger(__name__)


@dataclass
class NpcProfile:
    """
    NPC 档案。

    属性:
        id: 唯一标识
        name: 显示名
        aliases: 其他称呼（参与提及匹配）
        persona: 一句话人设
        memory: 记忆摘要
        facts: 按时间顺序的事实
    """

    id: str
    name: str
    aliases: tuple[str, ...] = ()
    persona: str = ""
    memory: str = ""
    facts: deque[str] = field(default_factory=lambda: deque(maxlen=50))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(n for n in (self.name, *self.aliases) if n and n.strip())


@runtime_checkable
class NameMatcher(Protocol):
    """在文本中查找被提及的 NPC。"""

    def matches(self, text: str, candidates: dict[str, tuple[str, ...]]) -> set[str]:
        """
        参数:
            text: 待扫描文本
            candidates: NPC id → 名称列表

        返回:
            被提及的 NPC id 集合
        """
        ...


class WordBoundaryMatcher:
    """整词、忽略大小写的名称匹配。"""

    def __init__(self) -> None:
        self._patterns: dict[str, re.Pattern[str]] = {}

    def _pattern(self, name: str) -> re.Pattern[str]:
        pattern = self._patterns.get(name)
        if pattern is None:
            pattern = re.compile(rf"(?<!\w){re.escape(name.strip())}(?!\w)", re.IGNORECASE)
            self._patterns[name] = pattern
        return pattern

    def matches(self, text: str, candidates: dict[str, tuple[str, ...]]) -> set[str]:
        if not text:
            return set()
        return {
            npc_id
            for npc_id, names in candidates.items()
            if any(self._pattern(name).search(text) for name in names)
        }


class NpcPresenceTracker:
    """
    NPC 在场状态。

    用法::

        tracker = NpcPresenceTracker()
        tracker.register(NpcProfile(id="mira", name="Mira", persona="Innkeeper"))
        tracker.observe(session.messages)
        tracker.present(max_count=2)
    """

    def __init__(
        self,
        matcher: NameMatcher | None = None,
        window_seconds: float = 600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.matcher = matcher or WordBoundaryMatcher()
        self.window_seconds = window_seconds
        self._clock = clock
        self._profiles: dict[str, NpcProfile] = {}
        self._explicit: set[str] = set()
        self._mentioned: dict[str, float] = {}
        self._departed: dict[str, float] = {}

    def register(self, profile: NpcProfile) -> None:
        self._profiles[profile.id] = profile

    def profile(self, npc_id: str) -> NpcProfile | None:
        return self._profiles.get(npc_id)

    @property
    def profiles(self) -> list[NpcProfile]:
        return list(self._profiles.values())

    def mark_present(self, npc_id: str, present: bool = True) -> None:
        """
        显式标记在场或离场（宿主状态驱动）。

        显式在场没有时间窗口，直到标记离场为止。离场时记下时间，
        此前的提及在之后的 observe() 中不再计入。
        """
        if present:
            if npc_id in self._profiles:
                self._explicit.add(npc_id)
            else:
                logger.warning("未注册的 NPC '%s'，忽略在场标记。", npc_id)
        else:
            self._explicit.discard(npc_id)
            self._mentioned.pop(npc_id, None)
            self._departed[npc_id] = self._clock()

    def add_fact(self, npc_id: str, fact: str) -> None:
        profile = self._profiles.get(npc_id)
        if profile is not None and fact.strip():
            profile.facts.append(fact.strip())

    def set_memory(self, npc_id: str, summary: str) -> None:
        profile = self._profiles.get(npc_id)
        if profile is not None:
            profile.memory = summary.strip()

    def observe(self, messages: Iterable[ChatMessage]) -> set[str]:
        """扫描消息并更新提及时间，返回本次被提及的 NPC id。"""
        candidates = {npc_id: p.names for npc_id, p in self._profiles.items() if p.names}
        seen: set[str] = set()
        if not candidates:
            return seen
        for message in messages:
            for npc_id in self.matcher.matches(message.text, candidates):
                stamp = message.timestamp
                if stamp <= self._departed.get(npc_id, float("-inf")):
                    continue
                if stamp > self._mentioned.get(npc_id, float("-inf")):
                    self._mentioned[npc_id] = stamp
                seen.add(npc_id)
        return seen

    def present(self, max_count: int) -> list[NpcProfile]:
        """在场 NPC：显式标记优先，其次窗口内最近被提及的，最多 max_count 个。"""
        if max_count <= 0:
            return []
        cutoff = self._clock() - self.window_seconds
        ordered = [npc_id for npc_id in self._profiles if npc_id in self._explicit]
        recent = sorted(
            (
                (stamp, npc_id)
                for npc_id, stamp in self._mentioned.items()
                if stamp >= cutoff and npc_id not in self._explicit and npc_id in self._profiles
            ),
            key=lambda item: item[0],
            reverse=True,
        )
        ordered.extend(npc_id for _, npc_id in recent)
        return [self._profiles[npc_id] for npc_id in ordered[:max_count]]

    def clear(self) -> None:
        """清空在场状态（换聊天时调用），保留档案。"""
        self._explicit.clear()
        self._mentioned.clear()
        self._departed.clear()


def render_npc(profile: NpcProfile, facts_per_npc: int) -> str:
    lines = [f"[{profile.name}] {profile.persona}".rstrip()]
    if profile.memory:
        lines.append(f"Memory: {profile.memory}")
    if facts_per_npc > 0:
        lines.extend(f"- {fact}" for fact in list(profile.facts)[-facts_per_npc:])
    return "\n".join(lines)


class NpcMemoryProducer(BaseProducer):
    """在场 NPC 的人设、记忆和最近事实。"""

    name = NPC

    def __init__(
        self,
        config: BudgetConfig,
        session: SessionState,
        tracker: NpcPresenceTracker,
        settings: NpcConfig | None = None,
        estimator: TokenEstimator | None = None,
        slot: SlotSpec | None = None,
    ) -> None:
        super().__init__(config, estimator, slot)
        self.session = session
        self.tracker = tracker
        self.settings = settings or NpcConfig()
        self._present_ids: list[str] = []

    async def render(self) -> str:
        self.tracker.observe(self.session.messages)
        present = self.tracker.present(self.settings.max_npcs)
        self._present_ids = [profile.id for profile in present]
        return "\n".join(render_npc(p, self.settings.facts_per_npc) for p in present)

    def extras(self) -> dict[str, Any]:
        return {"npc_ids": list(self._present_ids)}
