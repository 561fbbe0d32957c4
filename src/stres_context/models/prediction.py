"""
预测、分配决策与组件输出。

三者都是一次运行内的临时值：每次触发重新计算，核心层从不持久化。
遥测层可以保留最近若干次运行用于排查。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class InjectionPosition(str, Enum):
    """注入槽位置。"""

    BEFORE_PROMPT = "before_prompt"
    """放在主提示词之前"""

    IN_CHAT = "in_chat"
    """按 depth 插入到聊天记录中"""


class SlotRole(str, Enum):
    """注入内容在消息流中扮演的角色。"""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class SlotSpec:
    """
    注入槽元数据。

    属性:
        key: 槽位键（宿主据此覆盖或清空上一次的内容）
        position: 注入位置
        depth: 聊天内深度（0 = 最新消息之后）
        role: 消息角色
    """

    key: str
    position: InjectionPosition = InjectionPosition.IN_CHAT
    depth: int = 0
    role: SlotRole = SlotRole.SYSTEM


@dataclass(frozen=True)
class ComponentPrediction:
    """
    单个组件的预测结果。

    属性:
        name: 组件名
        tokens: 预测 Token 数（已按 max_tokens 封顶）
        text: 候选文本
        extras: 观测用的附带数据（检索命中、NPC id 等），不参与分配
        capped: tokens 是否因 max_tokens 封顶而小于 text 的实际成本
    """

    name: str
    tokens: int = 0
    text: str = ""
    extras: dict[str, Any] = field(default_factory=dict)
    capped: bool = False

    @classmethod
    def empty(cls, name: str) -> ComponentPrediction:
        """零成本、空文本的预测（禁用或失败的组件）。"""
        return cls(name=name, tokens=0, text="")


@dataclass(frozen=True)
class AllocationDecision:
    """
    预算分配决策。

    属性:
        limit: 可用上限（context_target - cushion - reserve，不小于 0）
        total_allocated: 所有组件实际获得的配额之和
        remaining: 分配结束后剩余的预算
        allowance: 组件名 → 配额
        sticky_total: 常驻组件占用的 Token 数
        partial: 获得部分配额的组件名（每次运行最多一个）
        dropped: 预测成本 > 0 却因余量耗尽拿到 0 的可选组件
    """

    limit: int
    total_allocated: int
    remaining: int
    allowance: dict[str, int]
    sticky_total: int = 0
    partial: str | None = None
    dropped: tuple[str, ...] = ()

    def allowance_for(self, name: str) -> int:
        return self.allowance.get(name, 0)

    @property
    def overcommitted(self) -> bool:
        """常驻组件本身已超出上限。"""
        return self.sticky_total > self.limit

    def summary(self) -> str:
        """人类可读的一行摘要。"""
        granted = ", ".join(
            f"{name}={tokens}" for name, tokens in self.allowance.items() if tokens > 0
        )
        text = (
            f"limit={self.limit} allocated={self.total_allocated} "
            f"remaining={self.remaining} [{granted or '-'}]"
        )
        if self.partial:
            text += f" partial={self.partial}"
        if self.dropped:
            text += f" dropped={','.join(self.dropped)}"
        return text


@dataclass(frozen=True)
class ComponentOutput:
    """
    裁剪后的最终输出，即一次 Sink 调用的参数。

    final_text 为空时仍会发布，用来清空上一轮注入的内容。
    """

    name: str
    final_text: str
    slot: SlotSpec

    @property
    def is_empty(self) -> bool:
        return not self.final_text
