"""
InjectionSink — 宿主的提示词注入通道。

publish(slot_key, text, position, depth, role) 用新文本覆盖槽位内容；
空文本表示清空该槽位。实现可以是同步或异步的。
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from stres_context.errors import PublishError
from stres_context.models.prediction import ComponentOutput, InjectionPosition, SlotRole
from stres_context.models.result import Result

logger = logging.getLogger(__name__)


@runtime_checkable
class InjectionSink(Protocol):
    """注入槽写入协议。"""

    def publish(
        self,
        slot_key: str,
        text: str,
        position: InjectionPosition,
        depth: int,
        role: SlotRole,
    ) -> Any:
        """写入或清空一个槽位；可以返回 awaitable。"""
        ...


@dataclass(frozen=True)
class PublishedSlot:
    """MemorySink 中一个槽位的当前内容。"""

    text: str
    position: InjectionPosition
    depth: int
    role: SlotRole


class MemorySink:
    """
    内存中的参考实现，用于测试和 CLI 预览。

    属性:
        slots: 槽位键 → 当前内容（清空的槽位被移除）
        history: 每次 publish 的 (slot_key, text) 记录
    """

    def __init__(self) -> None:
        self.slots: dict[str, PublishedSlot] = {}
        self.history: list[tuple[str, str]] = []

    def publish(
        self,
        slot_key: str,
        text: str,
        position: InjectionPosition,
        depth: int,
        role: SlotRole,
    ) -> None:
        self.history.append((slot_key, text))
        if text:
            self.slots[slot_key] = PublishedSlot(text=text, position=position, depth=depth, role=role)
        else:
            self.slots.pop(slot_key, None)

    def text(self, slot_key: str) -> str:
        slot = self.slots.get(slot_key)
        return slot.text if slot else ""

    def clear(self) -> None:
        self.slots.clear()
        self.history.clear()


async def publish_output(sink: InjectionSink, output: ComponentOutput) -> Result[str]:
    """
    发布一个组件输出，把任何异常包装为 PublishError。

    返回:
        成功时为槽位键
    """
    slot = output.slot
    try:
        published = sink.publish(slot.key, output.final_text, slot.position, slot.depth, slot.role)
        if inspect.isawaitable(published):
            await published
    except Exception as e:  # 单个槽位失败不影响其他槽位
        logger.warning("槽位 %s 写入失败：%s", slot.key, e)
        return Result.failure(
            PublishError(
                what=f"组件 '{output.name}' 的槽位 '{slot.key}' 写入失败。",
                why=f"{type(e).__name__}: {e}",
                how="检查宿主的注入通道；下一次触发会重新写入。",
                slot_key=slot.key,
                component=output.name,
            )
        )
    return Result.success(slot.key)
