"""
完整流水线集成测试 — 从 YAML 配置、宿主事件到注入槽。

覆盖范围:
- StresContext 组装全部八个 Producer 和外部数据源
- 预算紧张时的降级与裁剪
- 宿主事件驱动的连续运行
- 遥测汇总
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from stres_context import StresContext
from stres_context.config.loader import load_config
from stres_context.pipeline import EventBus
from stres_context.producers import LoreDocument, StaticCorpus, WorldState

CONFIG_YAML = """\
budget:
  contextTarget: {target}
  cushion: 100
  reserve: 100
  components:
    summaries: {{enabled: true}}
    rag: {{enabled: true, maxTokens: 120}}
    npc: {{enabled: true}}
    hud: {{enabled: true}}
  degradeOrder: [rag, npc, summaries, primer, hud, header, combat]
summary:
  every_turns: 2
npc:
  max_npcs: 2
"""

MANIFEST = {
    "title": "Eldoria",
    "races": ["Human", "Elf", "Dwarf", "Orc"],
    "factions": ["Silver Hand", "Ash Court", "Tide Wardens"],
    "biomes": ["tundra", "pine forest", "salt marsh"],
    "prices": [{"item": "bread", "price": "2c"}, {"item": "horse", "price": "40g"}],
    "terminology": {"Aether": "raw magic", "Hollow": "a cursed ruin"},
}


class ManifestApi:
    def __init__(self) -> None:
        self.calls = 0

    async def fetch(self) -> dict:
        self.calls += 1
        return MANIFEST


class WorldApi:
    async def fetch(self) -> WorldState:
        return WorldState(month="Frostfall", day="3", day_segment="dusk", weather="snow")


def _build(tmp_path: Path, target: int, fake_llm, npc_tracker) -> StresContext:
    path = tmp_path / "stres_context.yaml"
    path.write_text(CONFIG_YAML.format(target=target), encoding="utf-8")
    corpus = StaticCorpus([
        LoreDocument(id="mill", text="The old mill burned during the winter siege."),
        LoreDocument(id="dawn", text="Dawn bells ring twice in Ravenhold; the mill gate opens at dawn."),
        LoreDocument(id="road", text="The northern road is watched by Captain Vale's riders."),
    ])
    stres = StresContext(
        load_config(path),
        manifest_source=ManifestApi(),
        world_source=WorldApi(),
        summary_provider=fake_llm,
        documents=corpus,
        npc_tracker=npc_tracker,
    )
    stres.session.persona_name = "Aria"
    stres.session.location_name = "Ravenhold"
    stres.session.set_hud([{"key": "hp", "label": "HP", "value": "14/20"}, {"key": "gold", "label": "Gold", "value": 12}])
    return stres


def _assert_invariants(report) -> None:
    decision = report.decision
    assert decision is not None
    assert decision.limit >= 0
    if not decision.overcommitted:
        assert decision.total_allocated <= decision.limit
    partials = [
        name for name, allowance in decision.allowance.items()
        if 0 < allowance < report.predictions[name].tokens
    ]
    assert len(partials) <= 1
    for output in report.outputs:
        assert len(output.final_text) <= 4 * decision.allowance_for(output.name)


@pytest.mark.integration
class TestRoomyBudget:
    """预算充足：所有启用组件全额发布。"""

    @pytest.mark.asyncio
    async def test_all_components_published(self, tmp_path, fake_llm, npc_tracker) -> None:
        stres = _build(tmp_path, target=3000, fake_llm=fake_llm, npc_tracker=npc_tracker)

        await stres.on_message("user", "Tobin, is the mill open at dawn?")
        report = await stres.on_message("user", "Then we ride with Captain Vale.")

        _assert_invariants(report)
        assert report.errors == []
        assert report.decision.partial is None
        sink = stres.sink
        assert sink.text("STRES_GUARD").startswith("🔒 Speak only as Aria.")
        assert sink.text("STRES_SCENE_HEADER") == "📍 Ravenhold • Frostfall 3 • dusk • snow"
        assert sink.text("STRES_WORLD_PRIMER").startswith("World: Eldoria")
        assert sink.text("STRES_SUMMARY") == "- The party rode north."
        assert sink.text("STRES_RAG").startswith("- ")
        assert "[Captain Vale]" in sink.text("STRES_NPC_MEMORY")
        assert "[Tobin]" in sink.text("STRES_NPC_MEMORY")
        assert sink.text("STRES_HUD") == "📊 Player Sheet\nHP: 14/20\nGold: 12"
        assert sink.text("STRES_COMBAT_HEADER") == ""

    @pytest.mark.asyncio
    async def test_combat_mode_toggles_slot(self, tmp_path, fake_llm, npc_tracker) -> None:
        stres = _build(tmp_path, target=3000, fake_llm=fake_llm, npc_tracker=npc_tracker)
        stres.session.mode = "combat"
        stres.session.combat_round = 2
        stres.session.initiative = ["Aria", "Wolf"]
        await stres.run()
        assert stres.sink.text("STRES_COMBAT_HEADER") == "⚔️ Round 2 • Init: Aria, Wolf"

        stres.session.mode = "story"
        await stres.run()
        assert "STRES_COMBAT_HEADER" not in stres.sink.slots


@pytest.mark.integration
class TestTightBudget:
    """预算紧张：常驻组件保留，可选组件按降级顺序截断或丢弃。"""

    @pytest.mark.asyncio
    async def test_degrades_in_order(self, tmp_path, fake_llm, npc_tracker) -> None:
        stres = _build(tmp_path, target=260, fake_llm=fake_llm, npc_tracker=npc_tracker)
        report = await stres.on_message("user", "Is the mill gate open at dawn, Tobin?")

        _assert_invariants(report)
        decision = report.decision
        assert decision.limit == 60
        # 常驻组件全额
        for name in ("guard", "header", "hud"):
            assert decision.allowance_for(name) == report.predictions[name].tokens
        # rag 排在最前，拿走全部余量；之后的组件全部为 0
        assert decision.partial == "rag"
        assert decision.allowance_for("rag") == decision.limit - decision.sticky_total
        assert decision.allowance_for("npc") == 0
        assert decision.allowance_for("primer") == 0
        assert decision.remaining == 0
        assert stres.sink.text("STRES_WORLD_PRIMER") == ""
        assert stres.sink.text("STRES_GUARD")

    @pytest.mark.asyncio
    async def test_budget_edit_restores_primer(self, tmp_path, fake_llm, npc_tracker) -> None:
        """测试通过编辑器放宽预算后，下一次运行恢复被丢弃的组件。"""
        stres = _build(tmp_path, target=260, fake_llm=fake_llm, npc_tracker=npc_tracker)
        await stres.run()
        assert stres.sink.text("STRES_WORLD_PRIMER") == ""

        stres.editor.apply_profile("Rich")
        report = await stres.run()
        _assert_invariants(report)
        assert stres.sink.text("STRES_WORLD_PRIMER").startswith("World: Eldoria")


@pytest.mark.integration
class TestHostEvents:
    """宿主事件驱动。"""

    @pytest.mark.asyncio
    async def test_burst_of_events_last_write_wins(self, tmp_path, fake_llm, npc_tracker) -> None:
        stres = _build(tmp_path, target=3000, fake_llm=fake_llm, npc_tracker=npc_tracker)
        bus = EventBus()
        stres.attach(bus)

        await asyncio.gather(
            bus.emit("message_sent"),
            bus.emit("message_received"),
            bus.emit("generation_ended"),
        )
        await stres.orchestrator.wait_idle()

        records = stres.telemetry.records()
        assert len(records) == 3
        assert records[-1].published
        assert stres.sink.text("STRES_GUARD")

        summary = stres.telemetry.summary()
        assert summary.runs == 3
        assert summary.error_count == 0

    @pytest.mark.asyncio
    async def test_manifest_fetched_once_per_ttl(self, tmp_path, fake_llm, npc_tracker) -> None:
        stres = _build(tmp_path, target=3000, fake_llm=fake_llm, npc_tracker=npc_tracker)
        for _ in range(3):
            await stres.run()
        assert stres.manifests is not None
        assert stres.manifests.source.calls == 1

        await stres.on_chat_changed()
        assert stres.manifests.source.calls == 2
