"""
预算配置与 Producer 配置的 Schema 定义。

BudgetConfig 是整个核心唯一的共享可变状态：会话开始时加载一次，
之后只通过 BudgetConfigEditor 的显式命令修改（单写者、多读者）。
编排器和各 Producer 持有同一个实例的引用，从不读取全局设置。

数值字段（总量、余量、上限）遇到负数或缺失值一律钳制为 0，
让分配器始终是全函数；类型完全错误（如字符串 "abc"）才会校验失败。

YAML 示例::

    budget:
      contextTarget: 2000
      cushion: 200
      reserve: 200
      components:
        guard: { enabled: true, maxTokens: 60, sticky: true }
        primer: { enabled: true, maxTokens: 600, sticky: false }
      degradeOrder: [rag, npc, summaries, primer]
    rag:
      top_k: 2
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stres_context.config.defaults import (
    COMBAT_HEADER_TEMPLATE,
    DEFAULT_COMPONENTS,
    DEFAULT_CONTEXT_TARGET,
    DEFAULT_CUSHION,
    DEFAULT_DEGRADE_ORDER,
    DEFAULT_PROFILE,
    DEFAULT_RESERVE,
    GUARD_TEMPLATE,
    HEADER_TEMPLATE,
    HUD_PREFIX,
)


def _non_negative(value: Any) -> Any:
    """None → 0，负数 → 0；其余交给 pydantic 做类型校验。"""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)) and value < 0:
        return 0
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return max(0, int(stripped))
    return value


def _normalize_name(name: str) -> str:
    return str(name).strip().lower()


def normalize_degrade_order(value: Any) -> list[str]:
    """逗号或空白分隔的字符串、列表统一为小写、去重、保序的组件名列表。"""
    if value is None:
        return []
    if isinstance(value, str):
        value = [part for part in value.replace(",", " ").split() if part]
    seen: set[str] = set()
    ordered: list[str] = []
    for item in value:
        name = _normalize_name(item)
        if name and name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


class ComponentConfig(BaseModel):
    """单个上下文组件的预算配置。"""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    enabled: bool = Field(default=True, description="是否启用该组件")
    max_tokens: int = Field(
        default=0,
        alias="maxTokens",
        description="该组件任何时候可申请的 Token 上限",
    )
    sticky: bool = Field(
        default=False,
        description="常驻组件：启用时先于降级序列全额扣除，只能被禁用、不会因预算被饿死",
    )
    top_k: int | None = Field(
        default=None,
        alias="topK",
        description="检索类组件保留的命中数（仅 rag 使用）",
    )

    @field_validator("max_tokens", mode="before")
    @classmethod
    def _clamp_max_tokens(cls, value: Any) -> Any:
        return _non_negative(value)

    @field_validator("top_k", mode="before")
    @classmethod
    def _clamp_top_k(cls, value: Any) -> Any:
        if value is None:
            return None
        return _non_negative(value)


def _default_components() -> dict[str, ComponentConfig]:
    return {name: ComponentConfig(**spec) for name, spec in DEFAULT_COMPONENTS.items()}


class BudgetConfig(BaseModel):
    """
    上下文预算配置。

    属性:
        context_target: 总软上限
        cushion: 吸收估算误差的安全余量
        reserve: 为模型自身回复预留的余量
        components: 组件名 → ComponentConfig
        degrade_order: 降级顺序，最低优先级在前
        profile: 最近一次应用的预设档位名
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    profile: str = Field(default=DEFAULT_PROFILE, description="预设档位名")
    context_target: int = Field(
        default=DEFAULT_CONTEXT_TARGET,
        alias="contextTarget",
        description="总软上限（Token）",
    )
    cushion: int = Field(default=DEFAULT_CUSHION, description="安全余量（Token）")
    reserve: int = Field(default=DEFAULT_RESERVE, description="回复预留（Token）")
    components: dict[str, ComponentConfig] = Field(default_factory=_default_components)
    degrade_order: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DEGRADE_ORDER),
        alias="degradeOrder",
        description="降级顺序（最低优先级在前）",
    )

    @field_validator("context_target", "cushion", "reserve", mode="before")
    @classmethod
    def _clamp_totals(cls, value: Any) -> Any:
        return _non_negative(value)

    @field_validator("components", mode="after")
    @classmethod
    def _normalize_component_names(
        cls, value: dict[str, ComponentConfig]
    ) -> dict[str, ComponentConfig]:
        return {_normalize_name(name): cfg for name, cfg in value.items()}

    @field_validator("degrade_order", mode="before")
    @classmethod
    def _normalize_degrade_order(cls, value: Any) -> Any:
        return normalize_degrade_order(value)

    @property
    def limit(self) -> int:
        """可分配上限：max(0, context_target - cushion - reserve)。"""
        return max(0, self.context_target - self.cushion - self.reserve)

    def component(self, name: str) -> ComponentConfig | None:
        return self.components.get(_normalize_name(name))

    def is_enabled(self, name: str) -> bool:
        cfg = self.component(name)
        return cfg is not None and cfg.enabled

    def to_dict(self) -> dict[str, Any]:
        """以宿主使用的 camelCase 键导出。"""
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================
# Producer 配置
# ============================================================


class GuardConfig(BaseModel):
    """Guard 指令模板。"""

    template: str = Field(default=GUARD_TEMPLATE, description="{char} 替换为当前角色名")


class HeaderConfig(BaseModel):
    """场景头配置。"""

    template: str = Field(default=HEADER_TEMPLATE, description="场景头模板")


class CombatConfig(BaseModel):
    """战斗头配置。"""

    template: str = Field(default=COMBAT_HEADER_TEMPLATE, description="战斗头模板")


class CostBadgeConfig(BaseModel):
    """费用/余额徽章。"""

    enabled: bool = Field(default=True, description="是否启用费用徽章")
    show_badge: bool = Field(default=True, description="是否在场景头前显示徽章")


class PrimerConfig(BaseModel):
    """世界清单摘要。"""

    manifest_ttl_seconds: float = Field(
        default=15.0,
        description="世界清单缓存有效期（秒）",
        ge=0.0,
    )
    max_items_per_section: int = Field(
        default=8,
        description="每个分区最多列出的条目数",
        gt=0,
    )


class SummaryConfig(BaseModel):
    """滚动摘要。"""

    every_turns: int = Field(default=6, description="每 N 个用户轮次生成一次摘要", gt=0)
    window_size: int = Field(default=12, description="摘要覆盖的最近消息数", gt=0)
    max_items: int = Field(default=10, description="保留的摘要条数上限", gt=0)


class RetrievalConfig(BaseModel):
    """检索（RAG）。"""

    top_k: int = Field(default=2, description="默认保留的命中数", ge=0)
    bullet: str = Field(default="- ", description="每条片段的前缀")


class NpcConfig(BaseModel):
    """NPC 记忆。"""

    max_npcs: int = Field(default=2, description="同时在场的 NPC 上限", ge=0)
    presence_window_seconds: float = Field(
        default=600.0,
        description="提及后视为在场的时间窗口（秒）",
        ge=0.0,
    )
    facts_per_npc: int = Field(default=3, description="每个 NPC 渲染的最近事实数", ge=0)


class HudConfig(BaseModel):
    """玩家面板。"""

    prefix: str = Field(default=HUD_PREFIX, description="面板标题")


class TelemetryConfig(BaseModel):
    """运行遥测。"""

    enabled: bool = Field(default=True, description="是否记录运行报告")
    keep: int = Field(default=20, description="保留的运行报告条数", gt=0)


class StresConfig(BaseModel):
    """
    完整配置 — 对应 YAML 配置文件的根结构。

    每个字段都有默认值；budget 之外的分区只影响 Producer 的渲染，
    不参与预算分配。
    """

    version: str = Field(default="1.0", description="配置版本")

    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    guard: GuardConfig = Field(default_factory=GuardConfig)
    header: HeaderConfig = Field(default_factory=HeaderConfig)
    combat: CombatConfig = Field(default_factory=CombatConfig)
    cost: CostBadgeConfig = Field(default_factory=CostBadgeConfig)
    primer: PrimerConfig = Field(default_factory=PrimerConfig)
    summary: SummaryConfig = Field(default_factory=SummaryConfig)
    rag: RetrievalConfig = Field(default_factory=RetrievalConfig)
    npc: NpcConfig = Field(default_factory=NpcConfig)
    hud: HudConfig = Field(default_factory=HudConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
