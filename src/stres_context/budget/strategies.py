"""
预算分配策略 — 三个阶段的独立实现。

1. **上限计算**（LimitStrategy）：
   从总软上限中扣除安全余量和回复预留，得到可分配上限。

2. **常驻锁定**（StickyStrategy）：
   启用的常驻组件全额拿到封顶后的成本，不做预算检查。
   常驻组件代表必需的框架信息（谁在说话、在哪、何时），
   调用方想去掉它只能禁用，不能靠预算把它饿死。

3. **降级序列分配**（DegradeStrategy）：
   按 degrade_order 依次尝试可选组件：放得下就全额给；放不下但还有余量，
   就把剩余预算全部作为部分配额给它并把余量清零；否则给 0。
   因此每次分配最多只有一个组件拿到部分配额。

⚠️ 部分配额规则偏向"一个大的截断片段"而非"几个小的完整片段"，
这不是背包最优解，而是刻意保留的确定性规则。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from stres_context.config.schema import BudgetConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseResult:
    """
    单阶段的分配结果。

    属性:
        granted: 组件名 → 本阶段给出的配额
        tokens_used: 本阶段给出的配额总和
        remaining: 本阶段结束后的余量
        partial: 本阶段拿到部分配额的组件（仅降级阶段）
        dropped: 因余量耗尽而拿到 0 的组件（成本 > 0）
    """

    granted: dict[str, int]
    tokens_used: int
    remaining: int
    partial: str | None = None
    dropped: tuple[str, ...] = field(default_factory=tuple)


class LimitStrategy:
    """可分配上限：max(0, context_target - cushion - reserve)。"""

    def calculate_limit(self, config: BudgetConfig) -> int:
        target = max(0, config.context_target)
        cushion = max(0, config.cushion)
        reserve = max(0, config.reserve)
        return max(0, target - cushion - reserve)


class StickyStrategy:
    """
    常驻组件锁定策略。

    用法::

        result = StickyStrategy().allocate(costs, config, limit=1600)
    """

    def allocate(
        self,
        costs: dict[str, int],
        config: BudgetConfig,
        limit: int,
    ) -> PhaseResult:
        """
        全额保障所有启用的常驻组件。

        参数:
            costs: 组件名 → 封顶后的成本（禁用组件已是 0）
            config: 预算配置
            limit: 可分配上限

        返回:
            常驻阶段的结果；remaining = max(0, limit - 常驻总额)
        """
        granted: dict[str, int] = {}
        total = 0
        for name, cost in costs.items():
            component = config.component(name)
            if component is None or not component.enabled or not component.sticky:
                continue
            granted[name] = cost
            total += cost

        if total > limit and logger.isEnabledFor(logging.DEBUG):
            logger.debug("[StickyStrategy] 常驻组件 %d tokens 超出上限 %d tokens", total, limit)

        return PhaseResult(
            granted=granted,
            tokens_used=total,
            remaining=max(0, limit - total),
        )


class DegradeStrategy:
    """
    降级序列分配策略。

    只处理 degrade_order 中出现、已配置、启用且非常驻的组件；
    未出现在降级序列中的可选组件一律得到 0。
    """

    def allocate(
        self,
        costs: dict[str, int],
        config: BudgetConfig,
        available: int,
    ) -> PhaseResult:
        """
        参数:
            costs: 组件名 → 封顶后的成本
            config: 预算配置
            available: 常驻阶段之后的余量

        返回:
            降级阶段的结果
        """
        remaining = max(0, available)
        granted: dict[str, int] = {}
        dropped: list[str] = []
        partial: str | None = None
        used = 0

        for name in config.degrade_order:
            component = config.component(name)
            if component is None or not component.enabled or component.sticky:
                continue
            if name not in costs or name in granted:
                continue

            cost = costs[name]
            if cost <= remaining:
                grant = cost
                remaining -= cost
            elif cost > 0 and remaining > 0:
                grant = remaining
                remaining = 0
                partial = name
            else:
                grant = 0
                if cost > 0:
                    dropped.append(name)

            granted[name] = grant
            used += grant

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "[DegradeStrategy] 分配 %d tokens，余量 %d，部分配额 %s，丢弃 %s",
                used,
                remaining,
                partial or "-",
                ", ".join(dropped) or "-",
            )

        return PhaseResult(
            granted=granted,
            tokens_used=used,
            remaining=remaining,
            partial=partial,
            dropped=tuple(dropped),
        )
