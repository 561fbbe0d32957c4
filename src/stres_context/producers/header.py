"""
场景头与战斗头。

场景头形如 ``📍 Ravenhold • Frostfall 3 • dusk • snow``，
前面可以带费用徽章和剧本徽章。模拟世界状态通过 WorldStateSource
拉取，并用短冷却期缓存（TtlCache）。
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from stres_context.config.defaults import (
    BADGE_SEPARATOR,
    COMBAT,
    COMBAT_HEADER_TEMPLATE,
    HEADER,
    HEADER_TEMPLATE,
)
from stres_context.config.schema import BudgetConfig, CostBadgeConfig
from stres_context.models.prediction import SlotSpec
from stres_context.producers.base import BaseProducer
from stres_context.producers.cache import TtlCache
from stres_context.producers.state import ScenarioHeader, SessionState, WorldState
from stres_context.tokenizer.estimator import TokenEstimator

logger = logging.getLogger(__name__)

WORLD_STATE_COOLDOWN_SECONDS = 8.0
COMBAT_MODE = "combat"

UNKNOWN_LOCATION = "Unknown"
UNKNOWN_DATE = "Date?"
UNKNOWN_TIME = "time?"
DEFAULT_WEATHER = "clear"


@runtime_checkable
class WorldStateSource(Protocol):
    """模拟世界状态来源（宿主后端）。"""

    async def fetch(self) -> WorldState | None:
        ...


def _first(metadata: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = metadata.get(key)
        if value:
            return str(value)
    return ""


def render_scene_header(
    template: str,
    session: SessionState,
    world: WorldState | None = None,
    scenario: ScenarioHeader | None = None,
) -> str:
    """
    填充场景头模板。

    剧本元数据优先于世界状态；缺失字段使用固定的占位值
    （Unknown / Date? / time? / clear）。
    """
    metadata = scenario.metadata if scenario else {}
    world = world or WorldState()

    location = (
        _first(metadata, "locationName", "location")
        or session.location_name
        or session.region_id
        or UNKNOWN_LOCATION
    )
    date = _first(metadata, "date", "dateLabel") or world.date_label or UNKNOWN_DATE
    time_of_day = _first(metadata, "timeOfDay", "timeSegment") or world.day_segment or UNKNOWN_TIME
    weather = _first(metadata, "weather", "conditions") or world.weather or DEFAULT_WEATHER

    return (
        template.replace("{location}", location)
        .replace("{date}", date)
        .replace("{timeOfDay}", time_of_day)
        .replace("{weather}", weather)
    )


class HeaderProducer(BaseProducer):
    """
    场景头 Producer。

    参数:
        config: 预算配置
        session: 会话状态（位置、剧本头、费用徽章）
        template: 默认模板；剧本头自带模板时以剧本为准
        cost: 费用徽章开关
        world_source: 可选的模拟世界状态来源
    """

    name = HEADER

    def __init__(
        self,
        config: BudgetConfig,
        session: SessionState,
        template: str = HEADER_TEMPLATE,
        cost: CostBadgeConfig | None = None,
        world_source: WorldStateSource | None = None,
        estimator: TokenEstimator | None = None,
        slot: SlotSpec | None = None,
    ) -> None:
        super().__init__(config, estimator, slot)
        self.session = session
        self.template = template
        self.cost = cost or CostBadgeConfig()
        self._world_cache: TtlCache[WorldState] | None = None
        if world_source is not None:
            self._world_cache = TtlCache(
                world_source.fetch,
                ttl_seconds=WORLD_STATE_COOLDOWN_SECONDS,
                name="world_state",
            )
        self._badges: list[str] = []

    async def current_world(self) -> WorldState | None:
        if self._world_cache is not None:
            world = await self._world_cache.get()
            if world is not None:
                return world
        return self.session.world

    async def render(self) -> str:
        scenario = self.session.scenario_header
        world = await self.current_world()
        template = scenario.template if scenario and scenario.template else self.template
        header = render_scene_header(template, self.session, world, scenario)

        badges: list[str] = []
        cost_badge = self.session.cost_badge.strip()
        if self.cost.enabled and self.cost.show_badge and cost_badge:
            badges.append(cost_badge)
        if scenario:
            badges.extend(scenario.badges)
        self._badges = badges

        if badges:
            return f"{BADGE_SEPARATOR.join(badges)}{BADGE_SEPARATOR}{header}"
        return header

    def extras(self) -> dict[str, Any]:
        return {"badges": list(self._badges)} if self._badges else {}


class CombatHeaderProducer(BaseProducer):
    """战斗头：只在 mode == "combat" 时输出，否则为空（宿主据此清空槽位）。"""

    name = COMBAT

    def __init__(
        self,
        config: BudgetConfig,
        session: SessionState,
        template: str = COMBAT_HEADER_TEMPLATE,
        estimator: TokenEstimator | None = None,
        slot: SlotSpec | None = None,
    ) -> None:
        super().__init__(config, estimator, slot)
        self.session = session
        self.template = template

    async def render(self) -> str:
        if self.session.mode != COMBAT_MODE:
            return ""
        order = ", ".join(name for name in self.session.initiative if name) or "-"
        round_no = max(1, self.session.combat_round)
        return self.template.replace("{round}", str(round_no)).replace("{order}", order)
