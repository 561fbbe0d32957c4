"""
BudgetConfigEditor — 预算配置的命令式修改入口。

BudgetConfig 在会话内只能通过这里修改。编辑器直接修改传入的实例
（编排器和 Producer 持有同一个引用），每次修改后通知监听者，
宿主可以据此保存设置或立即触发一次重新分配。

用法::

    editor = BudgetConfigEditor(config)
    editor.set_context_target(3000)
    editor.set_component("rag", enabled=True, max_tokens=250)
    editor.set_degrade_order(["rag", "npc", "summaries", "primer"])
    editor.apply_profile("Lean")
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from stres_context.config.defaults import PROFILES, find_profile
from stres_context.config.loader import default_budget_dict
from stres_context.config.schema import (
    BudgetConfig,
    ComponentConfig,
    normalize_degrade_order,
)
from stres_context.errors import UnknownComponentError, UnknownProfileError

logger = logging.getLogger(__name__)

ChangeListener = Callable[[BudgetConfig, str], None]

_SCALAR_FIELDS = ("context_target", "cushion", "reserve", "profile")


class BudgetConfigEditor:
    """
    预算配置的单写者。

    属性:
        config: 被编辑的 BudgetConfig（与编排器共享的同一实例）
    """

    def __init__(self, config: BudgetConfig) -> None:
        self.config = config
        self._listeners: list[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        """注册变更监听者；回调参数为 (config, 变更描述)。"""
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # === 读取 ===

    def get(self, field: str) -> Any:
        """
        读取一个配置项。

        支持 context_target / cushion / reserve / profile / degrade_order / limit，
        以及 ``<组件名>.<enabled|max_tokens|sticky|top_k>``。
        """
        key = field.strip()
        if key in _SCALAR_FIELDS:
            return getattr(self.config, key)
        if key == "degrade_order":
            return list(self.config.degrade_order)
        if key == "limit":
            return self.config.limit

        name, _, attr = key.partition(".")
        component = self._require_component(name)
        if not attr:
            return component.model_dump()
        if attr not in ComponentConfig.model_fields:
            raise UnknownComponentError(
                what=f"组件 '{name}' 没有配置项 '{attr}'。",
                how="可用配置项：enabled, max_tokens, sticky, top_k。",
                component=name,
            )
        return getattr(component, attr)

    def snapshot(self) -> dict[str, Any]:
        """当前配置的字典副本（camelCase 键）。"""
        return self.config.to_dict()

    # === 修改 ===

    def set_context_target(self, value: int) -> None:
        self.config.context_target = value
        self._notify(f"context_target={self.config.context_target}")

    def set_cushion(self, value: int) -> None:
        self.config.cushion = value
        self._notify(f"cushion={self.config.cushion}")

    def set_reserve(self, value: int) -> None:
        self.config.reserve = value
        self._notify(f"reserve={self.config.reserve}")

    def set_component(
        self,
        name: str,
        *,
        enabled: bool | None = None,
        max_tokens: int | None = None,
        sticky: bool | None = None,
        top_k: int | None = None,
    ) -> ComponentConfig:
        """
        修改单个组件的配置；只更新显式传入的字段。

        异常:
            UnknownComponentError: 组件不存在
        """
        component = self._require_component(name)
        changes: list[str] = []
        if enabled is not None:
            component.enabled = enabled
            changes.append(f"enabled={component.enabled}")
        if max_tokens is not None:
            component.max_tokens = max_tokens
            changes.append(f"max_tokens={component.max_tokens}")
        if sticky is not None:
            component.sticky = sticky
            changes.append(f"sticky={component.sticky}")
        if top_k is not None:
            component.top_k = top_k
            changes.append(f"top_k={component.top_k}")
        if changes:
            self._notify(f"{name.strip().lower()}: {', '.join(changes)}")
        return component

    def set_degrade_order(self, names: list[str] | str) -> list[str]:
        """
        替换降级顺序（最低优先级在前）。

        异常:
            UnknownComponentError: 顺序中包含未配置的组件
        """
        ordered = normalize_degrade_order(names)
        unknown = [n for n in ordered if n not in self.config.components]
        if unknown:
            raise UnknownComponentError(
                what=f"降级顺序中包含未知组件：{', '.join(unknown)}。",
                why="degrade_order 只能引用 components 中已配置的组件。",
                how=f"可用组件：{', '.join(self.config.components)}。",
                component=unknown[0],
                available=list(self.config.components),
            )
        self.config.degrade_order = ordered
        self._notify(f"degrade_order={self.config.degrade_order}")
        return list(self.config.degrade_order)

    def apply_profile(self, name: str) -> None:
        """
        应用预设档位（Lean / Balanced / Rich）。

        只覆盖总量、余量和各组件上限；enabled / sticky 保持不变。

        异常:
            UnknownProfileError: 档位名无法识别
        """
        preset = find_profile(name)
        if preset is None:
            raise UnknownProfileError(
                what=f"未知的预设档位 '{name}'。",
                how=f"可用档位：{', '.join(PROFILES)}。",
                profile=name,
            )

        self.config.context_target = preset.context_target
        self.config.cushion = preset.cushion
        self.config.reserve = preset.reserve
        for component_name, cap in preset.max_tokens.items():
            component = self.config.component(component_name)
            if component is not None:
                component.max_tokens = cap
        self.config.profile = preset.name
        logger.info("已应用预设档位 %s（limit=%d）", preset.name, self.config.limit)
        self._notify(f"profile={preset.name}")

    def reset(self) -> None:
        """恢复默认配置（原地修改）。"""
        defaults = BudgetConfig(**default_budget_dict())
        for field_name in BudgetConfig.model_fields:
            setattr(self.config, field_name, getattr(defaults, field_name))
        self._notify("reset")

    def _require_component(self, name: str) -> ComponentConfig:
        component = self.config.component(name)
        if component is None:
            raise UnknownComponentError(
                what=f"未知的上下文组件 '{name}'。",
                why="BudgetConfig.components 中没有该组件。",
                how=f"可用组件：{', '.join(self.config.components)}。",
                component=name,
                available=list(self.config.components),
            )
        return component

    def _notify(self, change: str) -> None:
        logger.debug("预算配置变更：%s", change)
        for listener in list(self._listeners):
            listener(self.config, change)
