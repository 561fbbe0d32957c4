"""
BudgetAllocator — 把各组件的预测变成 Token 配额。

核心流程：

1. **上限计算**：limit = max(0, context_target - cushion - reserve)
2. **封顶**：每个预测的成本取 min(predicted, max_tokens)；禁用或未配置的组件为 0
3. **常驻锁定**：启用的常驻组件全额拿到封顶成本，不做预算检查
4. **降级序列**：remaining = max(0, limit - 常驻总额)，按 degrade_order 依次分配，
   第一个放不下的组件拿走全部余量，之后的组件全部为 0
5. **结果组装**：AllocationDecision（上限、总分配、余量、配额表）

分配器是全函数：负数或缺失的数值按 0 处理，永不抛出异常。
"""

from __future__ import annotations

import logging
from typing import Iterable

from stres_context.budget.strategies import DegradeStrategy, LimitStrategy, StickyStrategy
from stres_context.config.schema import BudgetConfig
from stres_context.models.prediction import AllocationDecision, ComponentPrediction

logger = logging.getLogger(__name__)


class BudgetAllocator:
    """
    上下文预算分配器。

    用法::

        allocator = BudgetAllocator()
        decision = allocator.allocate(config, predictions)

        decision.allowance["primer"]   # 600
        decision.remaining             # 860
    """

    def __init__(self) -> None:
        self.limit_strategy = LimitStrategy()
        self.sticky_strategy = StickyStrategy()
        self.degrade_strategy = DegradeStrategy()

    def allocate(
        self,
        config: BudgetConfig,
        predictions: Iterable[ComponentPrediction],
    ) -> AllocationDecision:
        """
        计算每个组件的 Token 配额。

        参数:
            config: 预算配置
            predictions: 每个 Producer 一条预测（禁用组件也可以出现，成本会被置 0）

        返回:
            AllocationDecision；allowance 覆盖所有已配置和已预测的组件
        """
        limit = self.limit_strategy.calculate_limit(config)
        costs = self.clamp_costs(config, predictions)

        sticky = self.sticky_strategy.allocate(costs, config, limit)
        optional = self.degrade_strategy.allocate(costs, config, sticky.remaining)

        allowance: dict[str, int] = {name: 0 for name in config.components}
        for name in costs:
            allowance.setdefault(name, 0)
        allowance.update(sticky.granted)
        allowance.update(optional.granted)

        total = sticky.tokens_used + optional.tokens_used
        decision = AllocationDecision(
            limit=limit,
            total_allocated=total,
            remaining=optional.remaining,
            allowance=allowance,
            sticky_total=sticky.tokens_used,
            partial=optional.partial,
            dropped=optional.dropped,
        )

        if sticky.tokens_used > limit:
            logger.warning(
                "常驻组件共 %d tokens，已超出可分配上限 %d tokens；"
                "可选组件本轮全部为 0。建议调低常驻组件的 max_tokens 或提高 contextTarget。",
                sticky.tokens_used,
                limit,
            )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("[BudgetAllocator] %s", decision.summary())

        return decision

    def clamp_costs(
        self,
        config: BudgetConfig,
        predictions: Iterable[ComponentPrediction],
    ) -> dict[str, int]:
        """
        封顶后的成本：min(predicted, max_tokens)，禁用或未配置的组件为 0。

        同名预测出现多次时以最后一条为准。
        """
        costs: dict[str, int] = {}
        for prediction in predictions:
            name = prediction.name.strip().lower()
            component = config.component(name)
            if component is None or not component.enabled:
                costs[name] = 0
                continue
            predicted = _as_non_negative(prediction.tokens)
            costs[name] = min(predicted, _as_non_negative(component.max_tokens))
        return costs


def _as_non_negative(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(0, int(value))
