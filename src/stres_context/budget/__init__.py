"""
上下文预算分配模块。

在很小的固定 Token 预算下，决定每一轮注入哪些上下文片段、各保留多少：

1. **常驻组件**（StickyStrategy）：guard、header 等必需的框架信息，
   启用即全额保障，只能被禁用，不会因预算被挤掉。

2. **降级序列**（DegradeStrategy）：rag、npc、summaries、primer 等可选增强，
   按运维可调的 degrade_order 依次分配，第一个放不下的拿走全部余量。

3. **上限**（LimitStrategy）：contextTarget 扣除 cushion 与 reserve。

基本用法::

    from stres_context.budget import BudgetAllocator
    from stres_context.config import merge_defaults

    config = merge_defaults({"contextTarget": 2000, "cushion": 200, "reserve": 200})
    decision = BudgetAllocator().allocate(config, predictions)
    print(decision.summary())
"""

from stres_context.budget.allocator import BudgetAllocator
from stres_context.budget.strategies import (
    DegradeStrategy,
    LimitStrategy,
    PhaseResult,
    StickyStrategy,
)

__all__ = [
    "BudgetAllocator",
    "DegradeStrategy",
    "LimitStrategy",
    "PhaseResult",
    "StickyStrategy",
]
