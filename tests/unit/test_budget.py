"""
BudgetAllocator 单元测试。

覆盖范围:
- budget/allocator.py: BudgetAllocator
- budget/strategies.py: LimitStrategy, StickyStrategy, DegradeStrategy
"""

from __future__ import annotations

import logging

import pytest

from stres_context.budget import BudgetAllocator, DegradeStrategy, LimitStrategy, StickyStrategy
from stres_context.config.loader import merge_defaults
from stres_context.config.schema import BudgetConfig
from stres_context.models.prediction import ComponentPrediction


def _predictions(**costs: int) -> list[ComponentPrediction]:
    return [ComponentPrediction(name=name, tokens=tokens) for name, tokens in costs.items()]


def _tight_budget() -> BudgetConfig:
    """limit = 700 - 200 - 200 = 300。"""
    return BudgetConfig(
        context_target=700,
        cushion=200,
        reserve=200,
        components={
            "guard": {"enabled": True, "max_tokens": 60, "sticky": True},
            "header": {"enabled": True, "max_tokens": 120, "sticky": True},
            "rag": {"enabled": True, "max_tokens": 300},
            "npc": {"enabled": True, "max_tokens": 400},
            "summaries": {"enabled": True, "max_tokens": 250},
            "primer": {"enabled": True, "max_tokens": 600},
        },
        degrade_order=["rag", "npc", "summaries", "primer"],
    )


# === 上限计算 ===


class TestLimitStrategy:
    """可分配上限测试。"""

    @pytest.mark.parametrize(
        ("target", "cushion", "reserve", "expected"),
        [
            (2000, 200, 200, 1600),
            (700, 200, 200, 300),
            (300, 200, 200, 0),
            (0, 0, 0, 0),
        ],
    )
    def test_limit(self, target: int, cushion: int, reserve: int, expected: int) -> None:
        """测试 limit = max(0, target - cushion - reserve)。"""
        config = BudgetConfig(context_target=target, cushion=cushion, reserve=reserve)
        assert LimitStrategy().calculate_limit(config) == expected
        assert config.limit == expected

    def test_negative_inputs_clamped(self) -> None:
        """测试负数配置被钳制为 0。"""
        config = BudgetConfig(context_target=-50, cushion=-10, reserve=-1)
        assert (config.context_target, config.cushion, config.reserve) == (0, 0, 0)
        assert LimitStrategy().calculate_limit(config) == 0


# === 示例场景 ===


class TestAllocatorExamples:
    """文档中的三个示例场景。"""

    def test_comfortable_budget(self, example_budget: BudgetConfig) -> None:
        """测试宽松预算：常驻全额，primer 全额，禁用组件为 0。"""
        decision = BudgetAllocator().allocate(
            example_budget,
            _predictions(guard=40, header=100, primer=600, rag=200, npc=150, summaries=90),
        )

        assert decision.limit == 1600
        assert decision.allowance["guard"] == 40
        assert decision.allowance["header"] == 100
        assert decision.sticky_total == 140
        assert decision.allowance["primer"] == 600
        assert decision.remaining == 860
        assert decision.allowance["rag"] == 0
        assert decision.allowance["npc"] == 0
        assert decision.allowance["summaries"] == 0
        assert decision.total_allocated == 740
        assert decision.partial is None

    def test_tight_budget_single_partial(self) -> None:
        """测试紧张预算：第一个放不下的组件拿走全部余量，后续全部为 0。"""
        decision = BudgetAllocator().allocate(
            _tight_budget(),
            _predictions(guard=40, header=100, rag=300, npc=10, summaries=5, primer=50),
        )

        assert decision.limit == 300
        assert decision.sticky_total == 140
        assert decision.allowance["rag"] == 160
        assert decision.partial == "rag"
        assert decision.allowance["npc"] == 0
        assert decision.allowance["summaries"] == 0
        assert decision.allowance["primer"] == 0
        assert decision.remaining == 0
        assert decision.total_allocated == 300
        assert decision.dropped == ("npc", "summaries", "primer")
        assert decision.summary().endswith("partial=rag dropped=npc,summaries,primer")

    def test_disabled_sticky_frees_budget(self, example_budget: BudgetConfig) -> None:
        """测试禁用的常驻组件不计入常驻总额。"""
        example_budget.components["guard"].enabled = False

        decision = BudgetAllocator().allocate(
            example_budget,
            _predictions(guard=40, header=100, primer=600),
        )

        assert decision.allowance["guard"] == 0
        assert decision.sticky_total == 100
        assert decision.remaining == 1600 - 100 - 600


# === 分配规则 ===


class TestAllocatorRules:
    """分配器规则与边界条件。"""

    def test_prediction_capped_at_max_tokens(self, budget_config: BudgetConfig) -> None:
        """测试预测值按 max_tokens 封顶。"""
        decision = BudgetAllocator().allocate(budget_config, _predictions(guard=500, primer=5000))
        assert decision.allowance["guard"] == 60
        assert decision.allowance["primer"] == 600

    def test_sticky_never_starved(self) -> None:
        """测试常驻组件即使超出上限也全额拿到。"""
        config = BudgetConfig(
            context_target=100,
            cushion=0,
            reserve=0,
            components={
                "guard": {"max_tokens": 60, "sticky": True},
                "header": {"max_tokens": 120, "sticky": True},
                "primer": {"max_tokens": 600},
            },
            degrade_order=["primer"],
        )
        decision = BudgetAllocator().allocate(config, _predictions(guard=60, header=120, primer=10))

        assert decision.allowance["guard"] == 60
        assert decision.allowance["header"] == 120
        assert decision.allowance["primer"] == 0
        assert decision.remaining == 0
        assert decision.overcommitted

    def test_overcommit_logs_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        """测试常驻组件超出上限时记录警告。"""
        config = BudgetConfig(
            context_target=50,
            cushion=0,
            reserve=0,
            components={"guard": {"max_tokens": 60, "sticky": True}},
            degrade_order=[],
        )
        with caplog.at_level(logging.WARNING, logger="stres_context.budget.allocator"):
            BudgetAllocator().allocate(config, _predictions(guard=60))
        assert any("常驻组件" in r.message for r in caplog.records)

    def test_unknown_component_gets_zero(self, budget_config: BudgetConfig) -> None:
        """测试未配置的组件得到 0，但出现在配额表中。"""
        decision = BudgetAllocator().allocate(budget_config, _predictions(weather=30))
        assert decision.allowance["weather"] == 0

    def test_component_outside_degrade_order_gets_zero(self) -> None:
        """测试不在降级顺序中的可选组件得到 0。"""
        config = BudgetConfig(
            components={"primer": {"max_tokens": 600}, "rag": {"max_tokens": 300}},
            degrade_order=["primer"],
        )
        decision = BudgetAllocator().allocate(config, _predictions(primer=100, rag=100))
        assert decision.allowance["primer"] == 100
        assert decision.allowance["rag"] == 0

    def test_negative_prediction_treated_as_zero(self, budget_config: BudgetConfig) -> None:
        """测试负数预测按 0 处理。"""
        decision = BudgetAllocator().allocate(budget_config, _predictions(primer=-40))
        assert decision.allowance["primer"] == 0
        assert decision.remaining == budget_config.limit

    def test_allowance_covers_all_configured_components(self, budget_config: BudgetConfig) -> None:
        """测试配额表覆盖所有已配置组件（包括没有预测的）。"""
        decision = BudgetAllocator().allocate(budget_config, [])
        assert set(decision.allowance) == set(budget_config.components)
        assert decision.total_allocated == 0

    def test_prediction_names_case_insensitive(self, budget_config: BudgetConfig) -> None:
        """测试组件名大小写不敏感。"""
        decision = BudgetAllocator().allocate(budget_config, _predictions(Primer=100))
        assert decision.allowance["primer"] == 100

    def test_zero_cost_after_exhaustion_not_partial(self) -> None:
        """测试余量耗尽后的 0 成本组件不会被记为部分配额。"""
        decision = BudgetAllocator().allocate(
            _tight_budget(),
            _predictions(guard=40, header=100, rag=300, npc=0),
        )
        assert decision.partial == "rag"
        assert decision.allowance["npc"] == 0


# === 不变量 ===


class TestAllocatorInvariants:
    """分配器不变量（多组输入）。"""

    CASES = [
        {"guard": 40, "header": 100, "primer": 600, "rag": 300, "npc": 400, "summaries": 250},
        {"guard": 60, "header": 120, "primer": 1, "rag": 1, "npc": 1, "summaries": 1},
        {"guard": 0, "header": 0, "primer": 900, "rag": 900, "npc": 900, "summaries": 900},
        {"guard": 55, "header": 10, "primer": 590, "rag": 290, "npc": 390, "summaries": 240},
    ]

    @pytest.mark.parametrize("target", [0, 450, 700, 1200, 2000, 5000])
    @pytest.mark.parametrize("costs", CASES)
    def test_invariants(self, target: int, costs: dict[str, int]) -> None:
        """测试常驻全额、总额不超上限、最多一个部分配额。"""
        config = BudgetConfig(
            context_target=target,
            cushion=100,
            reserve=100,
            components={
                "guard": {"max_tokens": 60, "sticky": True},
                "header": {"max_tokens": 120, "sticky": True},
                "primer": {"max_tokens": 600},
                "rag": {"max_tokens": 300},
                "npc": {"max_tokens": 400},
                "summaries": {"max_tokens": 250},
            },
            degrade_order=["rag", "npc", "summaries", "primer"],
        )
        decision = BudgetAllocator().allocate(config, _predictions(**costs))
        clamped = {n: min(c, config.components[n].max_tokens) for n, c in costs.items()}

        for name in ("guard", "header"):
            assert decision.allowance[name] == clamped[name]

        if decision.limit >= decision.sticky_total:
            assert sum(decision.allowance.values()) <= decision.limit

        partials = [
            n for n, granted in decision.allowance.items()
            if 0 < granted < clamped.get(n, 0)
        ]
        assert len(partials) <= 1
        assert decision.remaining >= 0
        assert decision.total_allocated == sum(decision.allowance.values())


# === 策略单元 ===


class TestStrategies:
    """各阶段策略的独立测试。"""

    def test_sticky_strategy_skips_optional(self) -> None:
        """测试常驻策略只处理启用的常驻组件。"""
        config = merge_defaults()
        result = StickyStrategy().allocate({"guard": 40, "primer": 600, "hud": 50}, config, 1600)
        assert result.granted == {"guard": 40}
        assert result.remaining == 1560

    def test_degrade_strategy_remaining_monotonic(self) -> None:
        """测试降级阶段余量单调不增，并记录被丢弃的组件。"""
        config = _tight_budget()
        result = DegradeStrategy().allocate(
            {"rag": 100, "npc": 100, "summaries": 100, "primer": 100}, config, 250
        )
        assert result.granted == {"rag": 100, "npc": 100, "summaries": 50, "primer": 0}
        assert result.partial == "summaries"
        assert result.dropped == ("primer",)
        assert result.remaining == 0

    def test_degrade_strategy_ignores_duplicates(self) -> None:
        """测试降级顺序中的重复名只处理一次。"""
        config = BudgetConfig(
            components={"rag": {"max_tokens": 300}},
            degrade_order=["rag", "rag"],
        )
        assert config.degrade_order == ["rag"]
        result = DegradeStrategy().allocate({"rag": 100}, config, 150)
        assert result.granted == {"rag": 100}
        assert result.remaining == 50
