"""
配置模块单元测试。

覆盖范围:
- config/schema.py: BudgetConfig, ComponentConfig, normalize_degrade_order
- config/loader.py: merge_defaults, load_config, validate_config_file, dump_config
- config/editor.py: BudgetConfigEditor
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from stres_context.config import (
    BudgetConfig,
    BudgetConfigEditor,
    StresConfig,
    dump_config,
    find_config_file,
    load_config,
    merge_defaults,
    validate_config_file,
)
from stres_context.config.defaults import DEFAULT_DEGRADE_ORDER, PROFILES, default_slot
from stres_context.config.schema import normalize_degrade_order
from stres_context.errors import (
    ConfigLoadError,
    ConfigValidationError,
    UnknownComponentError,
    UnknownProfileError,
)
from stres_context.models.prediction import InjectionPosition


# === Schema ===


class TestBudgetSchema:
    """BudgetConfig Schema 测试。"""

    def test_defaults(self) -> None:
        """测试默认值：2000 / 200 / 200，八个组件。"""
        config = BudgetConfig()
        assert config.limit == 1600
        assert config.profile == "Balanced"
        assert set(config.components) == {
            "guard", "header", "primer", "summaries", "rag", "npc", "hud", "combat",
        }
        assert config.components["guard"].sticky
        assert not config.components["rag"].enabled
        assert config.components["rag"].top_k == 2
        assert tuple(config.degrade_order) == DEFAULT_DEGRADE_ORDER

    def test_camel_case_aliases(self) -> None:
        """测试宿主的 camelCase 键。"""
        config = BudgetConfig(
            contextTarget=1000,
            components={"rag": {"maxTokens": 120, "topK": 4}},
            degradeOrder=["rag"],
        )
        assert config.context_target == 1000
        assert config.components["rag"].max_tokens == 120
        assert config.components["rag"].top_k == 4
        assert config.to_dict()["contextTarget"] == 1000
        assert config.to_dict()["components"]["rag"]["maxTokens"] == 120

    def test_negative_max_tokens_clamped(self) -> None:
        config = BudgetConfig(components={"rag": {"max_tokens": -10}})
        assert config.components["rag"].max_tokens == 0

    def test_assignment_clamped(self) -> None:
        """测试赋值同样经过校验和钳制。"""
        config = BudgetConfig()
        config.cushion = -20
        assert config.cushion == 0

    def test_component_names_normalized(self) -> None:
        config = BudgetConfig(components={" RAG ": {"max_tokens": 10}}, degrade_order="RAG, rag npc")
        assert "rag" in config.components
        assert config.degrade_order == ["rag", "npc"]
        assert config.component("Rag") is config.components["rag"]

    def test_normalize_degrade_order(self) -> None:
        assert normalize_degrade_order(None) == []
        assert normalize_degrade_order("rag npc,summaries") == ["rag", "npc", "summaries"]
        assert normalize_degrade_order(["Primer", "primer", "HUD"]) == ["primer", "hud"]

    def test_default_slots(self) -> None:
        """测试默认注入槽。"""
        assert default_slot("primer").key == "STRES_WORLD_PRIMER"
        assert default_slot("primer").position == InjectionPosition.BEFORE_PROMPT
        assert default_slot("npc").depth == 1
        assert default_slot("weather").key == "STRES_WEATHER"


# === merge_defaults ===


class TestMergeDefaults:
    """merge_defaults 纯函数测试。"""

    def test_none_gives_defaults(self) -> None:
        assert merge_defaults().model_dump() == BudgetConfig().model_dump()

    def test_component_level_deep_merge(self) -> None:
        """测试只覆盖组件的单个字段，其余保持默认。"""
        config = merge_defaults({"components": {"rag": {"enabled": True}}})
        assert config.components["rag"].enabled
        assert config.components["rag"].max_tokens == 300
        assert config.components["primer"].max_tokens == 600

    def test_partial_not_mutated(self) -> None:
        partial = {"contextTarget": 3000, "components": {"npc": {"maxTokens": 100}}}
        snapshot = yaml.safe_dump(partial)
        merge_defaults(partial)
        assert yaml.safe_dump(partial) == snapshot

    def test_legacy_degrade_block(self) -> None:
        """测试旧版 degrade: {order: [...]} 写法。"""
        config = merge_defaults({"degrade": {"order": ["npc", "rag"]}})
        assert config.degrade_order == ["npc", "rag"]

    def test_new_component_added(self) -> None:
        config = merge_defaults({"components": {"weather": {"maxTokens": 40}}})
        assert config.components["weather"].max_tokens == 40
        assert config.components["weather"].enabled

    def test_invalid_type_raises(self) -> None:
        with pytest.raises(ConfigValidationError):
            merge_defaults({"components": {"rag": {"enabled": "sometimes"}}})

    def test_non_mapping_raises(self) -> None:
        with pytest.raises(ConfigValidationError):
            merge_defaults(["not", "a", "mapping"])  # type: ignore[arg-type]


# === 加载 ===


class TestLoadConfig:
    """YAML 加载测试。"""

    def test_load_explicit_file(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text(
            "budget:\n"
            "  contextTarget: 3000\n"
            "  components:\n"
            "    rag: {enabled: true, maxTokens: 250}\n"
            "summary:\n"
            "  every_turns: 4\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.budget.context_target == 3000
        assert config.budget.components["rag"].enabled
        assert config.budget.components["rag"].max_tokens == 250
        assert config.budget.components["guard"].max_tokens == 60
        assert config.summary.every_turns == 4

    def test_search_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """测试自动发现 .stres/budget.yaml。"""
        (tmp_path / ".stres").mkdir()
        (tmp_path / ".stres" / "budget.yaml").write_text("budget:\n  cushion: 50\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        found = find_config_file()
        assert found is not None
        assert found.resolve() == (tmp_path / ".stres" / "budget.yaml").resolve()
        assert load_config().budget.cushion == 50

    def test_no_file_gives_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert find_config_file() is None
        assert load_config().budget.limit == 1600

    def test_overrides_merge_over_file(self, tmp_path: Path) -> None:
        path = tmp_path / "stres_context.yaml"
        path.write_text("budget:\n  contextTarget: 3000\n  reserve: 100\n", encoding="utf-8")
        config = load_config(path, overrides={"budget": {"contextTarget": 2500}})
        assert config.budget.context_target == 2500
        assert config.budget.reserve == 100

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigLoadError) as exc_info:
            load_config(tmp_path / "nope.yaml")
        assert "stres-context init" in exc_info.value.full_message

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("budget: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigLoadError):
            load_config(path)

    def test_root_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ConfigLoadError):
            load_config(path)

    def test_validation_error_names_field(self, tmp_path: Path) -> None:
        path = tmp_path / "bad_field.yaml"
        path.write_text("summary:\n  every_turns: 0\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path)
        assert "every_turns" in exc_info.value.why

    def test_validate_config_file(self, tmp_path: Path) -> None:
        good = tmp_path / "good.yaml"
        good.write_text("budget:\n  cushion: 10\n", encoding="utf-8")
        assert validate_config_file(good) == []
        assert len(validate_config_file(tmp_path / "missing.yaml")) == 1

    def test_dump_round_trip(self, tmp_path: Path) -> None:
        """测试导出的 YAML 可以重新加载。"""
        config = StresConfig()
        config.budget.components["npc"].enabled = True
        path = tmp_path / "dumped.yaml"
        path.write_text(dump_config(config), encoding="utf-8")

        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert "contextTarget" in data["budget"]
        assert load_config(path).budget.components["npc"].enabled


# === 编辑器 ===


class TestBudgetConfigEditor:
    """BudgetConfigEditor 命令测试。"""

    def test_setters_mutate_shared_instance(self, budget_config: BudgetConfig) -> None:
        editor = BudgetConfigEditor(budget_config)
        editor.set_context_target(3000)
        editor.set_cushion(100)
        editor.set_reserve(-5)
        assert budget_config.context_target == 3000
        assert budget_config.cushion == 100
        assert budget_config.reserve == 0
        assert editor.get("limit") == 2900

    def test_set_component(self, budget_config: BudgetConfig) -> None:
        editor = BudgetConfigEditor(budget_config)
        editor.set_component("RAG", enabled=True, max_tokens=150, top_k=3)
        assert editor.get("rag.enabled") is True
        assert editor.get("rag.max_tokens") == 150
        assert editor.get("rag.top_k") == 3
        assert editor.get("rag.sticky") is False

    def test_unknown_component(self, budget_config: BudgetConfig) -> None:
        editor = BudgetConfigEditor(budget_config)
        with pytest.raises(UnknownComponentError) as exc_info:
            editor.set_component("weather", enabled=True)
        assert exc_info.value.component == "weather"
        with pytest.raises(UnknownComponentError):
            editor.get("rag.colour")

    def test_set_degrade_order_validates_first(self, budget_config: BudgetConfig) -> None:
        """测试包含未知组件时不修改原顺序。"""
        editor = BudgetConfigEditor(budget_config)
        before = list(budget_config.degrade_order)
        with pytest.raises(UnknownComponentError):
            editor.set_degrade_order(["rag", "weather"])
        assert budget_config.degrade_order == before

        assert editor.set_degrade_order("npc, rag") == ["npc", "rag"]
        assert editor.get("degrade_order") == ["npc", "rag"]

    @pytest.mark.parametrize("name", ["Lean", "balanced", "RICH"])
    def test_apply_profile(self, budget_config: BudgetConfig, name: str) -> None:
        """测试应用档位只改变总量和上限，不改变 enabled / sticky。"""
        budget_config.components["rag"].enabled = True
        editor = BudgetConfigEditor(budget_config)
        editor.apply_profile(name)

        preset = next(p for key, p in PROFILES.items() if key.lower() == name.lower())
        assert budget_config.profile == preset.name
        assert budget_config.context_target == preset.context_target
        assert budget_config.components["primer"].max_tokens == preset.max_tokens["primer"]
        assert budget_config.components["rag"].enabled
        assert budget_config.components["guard"].sticky

    def test_unknown_profile(self, budget_config: BudgetConfig) -> None:
        with pytest.raises(UnknownProfileError):
            BudgetConfigEditor(budget_config).apply_profile("Huge")

    def test_listeners_notified(self, budget_config: BudgetConfig) -> None:
        editor = BudgetConfigEditor(budget_config)
        changes: list[str] = []

        def listener(config: BudgetConfig, change: str) -> None:
            changes.append(change)

        editor.add_listener(listener)
        editor.set_cushion(10)
        editor.set_component("npc", sticky=True)
        editor.remove_listener(listener)
        editor.set_cushion(20)

        assert changes == ["cushion=10", "npc: sticky=True"]

    def test_reset(self, budget_config: BudgetConfig) -> None:
        editor = BudgetConfigEditor(budget_config)
        editor.apply_profile("Lean")
        editor.set_degrade_order(["rag"])
        editor.reset()
        assert budget_config.model_dump() == BudgetConfig().model_dump()

    def test_snapshot_uses_camel_case(self, budget_config: BudgetConfig) -> None:
        snapshot = BudgetConfigEditor(budget_config).snapshot()
        assert snapshot["contextTarget"] == 2000
        assert "degradeOrder" in snapshot
