"""
默认配置、组件名、模板与预设档位。

这里只放纯数据，不依赖 Schema，供 schema.py 构造默认值、
editor.py 应用预设档位使用。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stres_context.models.prediction import InjectionPosition, SlotRole, SlotSpec

# ============================================================
# 组件名
# ============================================================

GUARD = "guard"
HEADER = "header"
PRIMER = "primer"
SUMMARIES = "summaries"
RAG = "rag"
NPC = "npc"
HUD = "hud"
COMBAT = "combat"

DEFAULT_CONTEXT_TARGET = 2000
DEFAULT_CUSHION = 200
DEFAULT_RESERVE = 200
DEFAULT_PROFILE = "Balanced"

DEFAULT_COMPONENTS: dict[str, dict[str, Any]] = {
    GUARD: {"enabled": True, "max_tokens": 60, "sticky": True},
    PRIMER: {"enabled": True, "max_tokens": 600, "sticky": False},
    HEADER: {"enabled": True, "max_tokens": 120, "sticky": True},
    SUMMARIES: {"enabled": False, "max_tokens": 250, "sticky": False},
    RAG: {"enabled": False, "max_tokens": 300, "sticky": False, "top_k": 2},
    NPC: {"enabled": False, "max_tokens": 400, "sticky": False},
    HUD: {"enabled": False, "max_tokens": 200, "sticky": True},
    COMBAT: {"enabled": True, "max_tokens": 220, "sticky": True},
}

# 最低优先级在前：预算紧张时最先被截断或丢弃
DEFAULT_DEGRADE_ORDER: tuple[str, ...] = (RAG, NPC, SUMMARIES, PRIMER, HUD, HEADER, COMBAT)

# ============================================================
# 模板
# ============================================================

GUARD_TEMPLATE = (
    "🔒 Speak only as {char}. Do not reveal others' private knowledge. "
    "Use only scene/world context and your own memory."
)
HEADER_TEMPLATE = "📍 {location} • {date} • {timeOfDay} • {weather}"
COMBAT_HEADER_TEMPLATE = "⚔️ Round {round} • Init: {order}"
HUD_PREFIX = "📊 Player Sheet"
BADGE_SEPARATOR = " • "

# ============================================================
# 注入槽
# ============================================================

SLOT_PREFIX = "STRES_"

DEFAULT_SLOTS: dict[str, SlotSpec] = {
    GUARD: SlotSpec(key="STRES_GUARD", position=InjectionPosition.IN_CHAT, depth=0),
    HEADER: SlotSpec(key="STRES_SCENE_HEADER", position=InjectionPosition.IN_CHAT, depth=0),
    PRIMER: SlotSpec(key="STRES_WORLD_PRIMER", position=InjectionPosition.BEFORE_PROMPT, depth=0),
    SUMMARIES: SlotSpec(key="STRES_SUMMARY", position=InjectionPosition.BEFORE_PROMPT, depth=0),
    RAG: SlotSpec(key="STRES_RAG", position=InjectionPosition.BEFORE_PROMPT, depth=0),
    NPC: SlotSpec(key="STRES_NPC_MEMORY", position=InjectionPosition.IN_CHAT, depth=1),
    HUD: SlotSpec(key="STRES_HUD", position=InjectionPosition.IN_CHAT, depth=0),
    COMBAT: SlotSpec(key="STRES_COMBAT_HEADER", position=InjectionPosition.IN_CHAT, depth=0),
}


def default_slot(name: str) -> SlotSpec:
    """组件的默认注入槽；未登记的组件按名字生成 IN_CHAT/system 槽。"""
    slot = DEFAULT_SLOTS.get(name)
    if slot is not None:
        return slot
    return SlotSpec(key=f"{SLOT_PREFIX}{name.upper()}", role=SlotRole.SYSTEM)


# ============================================================
# 预设档位
# ============================================================


@dataclass(frozen=True)
class ProfilePreset:
    """
    预设档位：一组数值元组。

    应用档位只改变总量、余量和各组件的上限，不改变 enabled / sticky。
    """

    name: str
    context_target: int
    cushion: int
    reserve: int
    max_tokens: dict[str, int] = field(default_factory=dict)


PROFILES: dict[str, ProfilePreset] = {
    "Lean": ProfilePreset(
        name="Lean",
        context_target=1200,
        cushion=150,
        reserve=150,
        max_tokens={
            GUARD: 60, HEADER: 100, PRIMER: 300, SUMMARIES: 150,
            RAG: 150, NPC: 200, HUD: 120, COMBAT: 160,
        },
    ),
    "Balanced": ProfilePreset(
        name="Balanced",
        context_target=DEFAULT_CONTEXT_TARGET,
        cushion=DEFAULT_CUSHION,
        reserve=DEFAULT_RESERVE,
        max_tokens={name: spec["max_tokens"] for name, spec in DEFAULT_COMPONENTS.items()},
    ),
    "Rich": ProfilePreset(
        name="Rich",
        context_target=3500,
        cushion=250,
        reserve=300,
        max_tokens={
            GUARD: 80, HEADER: 160, PRIMER: 900, SUMMARIES: 400,
            RAG: 500, NPC: 700, HUD: 260, COMBAT: 260,
        },
    ),
}


def find_profile(name: str) -> ProfilePreset | None:
    """大小写不敏感地查找预设档位。"""
    wanted = name.strip().lower()
    for preset_name, preset in PROFILES.items():
        if preset_name.lower() == wanted:
            return preset
    return None
