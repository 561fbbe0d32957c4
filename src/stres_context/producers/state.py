"""
会话状态 — Producer 渲染所需的宿主数据。

宿主（聊天应用）在每次事件后更新这些字段：当前角色、位置、
模拟世界状态、场景头、费用徽章、战斗模式、玩家面板以及最近的聊天消息。
核心只读取，不持久化。
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ChatMessage:
    """一条聊天消息。timestamp 为 Unix 秒。"""

    role: str
    text: str
    timestamp: float = field(default_factory=time.time)

    @property
    def is_user(self) -> bool:
        return self.role == "user"


@dataclass(frozen=True)
class WorldState:
    """
    模拟世界状态（日期、时段、天气）。

    from_dict 接受宿主后端的嵌套形状::

        {"time": {"month": "Frostfall", "day": 3, "daySegment": "dusk"},
         "weather": {"condition": "snow"}}
    """

    month: str = ""
    day: str = ""
    iso: str = ""
    day_segment: str = ""
    weather: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> WorldState:
        data = data or {}
        time_part = data.get("time") or {}
        weather_part = data.get("weather") or {}
        if isinstance(weather_part, str):
            weather = weather_part
        else:
            weather = str(weather_part.get("condition") or "")
        return cls(
            month=str(time_part.get("month") or ""),
            day=str(time_part.get("day") or ""),
            iso=str(time_part.get("iso") or ""),
            day_segment=str(time_part.get("daySegment") or time_part.get("day_segment") or ""),
            weather=weather,
        )

    @property
    def date_label(self) -> str:
        label = f"{self.month} {self.day}".strip()
        return label or self.iso[:10]


@dataclass(frozen=True)
class ScenarioHeader:
    """当前剧本提供的场景头：模板覆盖、徽章和元数据。"""

    template: str = ""
    badges: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ScenarioHeader | None:
        if not data:
            return None
        badges = data.get("badges") or data.get("tags") or []
        if isinstance(badges, str):
            badges = [badges]
        metadata = data.get("metadata")
        return cls(
            template=str(data.get("template") or data.get("text") or ""),
            badges=tuple(str(b).strip() for b in badges if str(b).strip()),
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )


@dataclass(frozen=True)
class HudEntry:
    """玩家面板的一行。"""

    key: str
    label: str = ""
    value: str = ""

    @classmethod
    def from_value(cls, entry: Any) -> HudEntry | None:
        if not entry:
            return None
        if isinstance(entry, str):
            return cls(key=entry, label=entry)
        if isinstance(entry, dict):
            key = entry.get("key") or entry.get("id")
            if not key:
                return None
            value = entry.get("value")
            return cls(
                key=str(key),
                label=str(entry.get("label") or entry.get("name") or key),
                value="" if value is None else str(value),
            )
        return None


@dataclass
class SessionState:
    """
    Producer 共享的可变会话状态。

    属性:
        persona_name: 当前扮演的角色名（Guard 使用）
        location_name: 当前位置名
        region_id: 当前区域 id
        world: 模拟世界状态
        scenario_header: 剧本场景头
        scenario_primer: 剧本自带的世界导语（优先于世界清单）
        cost_badge: 费用/余额徽章文本
        mode: 模式标记（story / explore / combat）
        combat_round: 战斗回合数
        initiative: 先攻顺序
        hud_entries: 玩家面板条目
        messages: 最近的聊天消息（按时间顺序）
        max_messages: 保留的消息条数上限
    """

    persona_name: str = ""
    location_name: str = ""
    region_id: str = ""
    world: WorldState | None = None
    scenario_header: ScenarioHeader | None = None
    scenario_primer: str = ""
    cost_badge: str = ""
    mode: str = "story"
    combat_round: int = 0
    initiative: list[str] = field(default_factory=list)
    hud_entries: list[HudEntry] = field(default_factory=list)
    messages: list[ChatMessage] = field(default_factory=list)
    max_messages: int = 50

    def add_message(self, message: ChatMessage) -> None:
        self.messages.append(message)
        overflow = len(self.messages) - self.max_messages
        if overflow > 0:
            del self.messages[:overflow]

    def latest_user_message(self) -> str:
        for message in reversed(self.messages):
            if message.is_user and message.text.strip():
                return message.text
        return ""

    def recent_messages(self, count: int) -> list[ChatMessage]:
        if count <= 0:
            return []
        return self.messages[-count:]

    def set_hud(self, entries: list[Any]) -> None:
        """从字符串或字典列表设置玩家面板。"""
        parsed = (HudEntry.from_value(entry) for entry in entries)
        self.hud_entries = [entry for entry in parsed if entry is not None]
