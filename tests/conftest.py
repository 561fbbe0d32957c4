"""
测试套件共享 Fixtures 和配置。

本文件定义了所有测试中可复用的 fixtures、假 Producer、假数据源和辅助函数。
"""

from __future__ import annotations

from typing import Any

import pytest

from stres_context.config.loader import merge_defaults
from stres_context.config.schema import BudgetConfig, StresConfig
from stres_context.models.prediction import ComponentPrediction, SlotSpec
from stres_context.pipeline.sink import MemorySink
from stres_context.producers.npc import NpcPresenceTracker, NpcProfile
from stres_context.producers.retrieval import LoreDocument, StaticCorpus
from stres_context.producers.state import ChatMessage, SessionState, WorldState


# === 假协作者 ===


class StaticProducer:
    """
    返回固定预测的 Producer。

    fail=True 时 predict() 抛出 RuntimeError；delay 用于制造并发交错。
    """

    def __init__(
        self,
        name: str,
        text: str = "",
        tokens: int | None = None,
        *,
        sticky: bool = False,
        max_tokens: int = 1000,
        fail: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.text = text
        self.tokens = tokens if tokens is not None else (len(text) + 3) // 4
        self.slot = SlotSpec(key=f"SLOT_{name.upper()}")
        self._sticky = sticky
        self._max_tokens = max_tokens
        self.fail = fail
        self.delay = delay
        self.calls = 0

    def is_enabled(self) -> bool:
        return True

    def is_sticky(self) -> bool:
        return self._sticky

    def max_tokens(self) -> int:
        return self._max_tokens

    async def predict(self) -> ComponentPrediction:
        import asyncio

        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"{self.name} source unavailable")
        return ComponentPrediction(name=self.name, tokens=self.tokens, text=self.text)


class FakeManifestSource:
    """按顺序返回预设结果的世界清单来源；元素为异常时抛出。"""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls = 0

    async def fetch(self) -> dict[str, Any] | None:
        self.calls += 1
        index = min(self.calls, len(self.responses)) - 1
        response = self.responses[index] if self.responses else None
        if isinstance(response, Exception):
            raise response
        return response


class FakeLLM:
    """记录 prompt 的假 LLM。"""

    def __init__(self, reply: str = "- The party rode north.", fail: bool = False) -> None:
        self.reply = reply
        self.fail = fail
        self.prompts: list[str] = []

    async def generate(self, prompt: str, max_tokens: int = 250) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise ConnectionError("llm offline")
        return self.reply


class FakeClock:
    """可手动推进的时钟。"""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# === 配置 Fixtures ===


@pytest.fixture
def budget_config() -> BudgetConfig:
    """默认预算配置（limit=1600）。"""
    return merge_defaults()


@pytest.fixture
def stres_config() -> StresConfig:
    return StresConfig()


@pytest.fixture
def example_budget() -> BudgetConfig:
    """只保留 guard / header / primer / rag / npc / summaries 的示例配置。"""
    return BudgetConfig(
        context_target=2000,
        cushion=200,
        reserve=200,
        components={
            "guard": {"enabled": True, "max_tokens": 60, "sticky": True},
            "header": {"enabled": True, "max_tokens": 120, "sticky": True},
            "primer": {"enabled": True, "max_tokens": 600, "sticky": False},
            "rag": {"enabled": False, "max_tokens": 300, "sticky": False},
            "npc": {"enabled": False, "max_tokens": 400, "sticky": False},
            "summaries": {"enabled": False, "max_tokens": 250, "sticky": False},
        },
        degrade_order=["primer", "rag", "npc", "summaries"],
    )


# === 会话与数据源 Fixtures ===


@pytest.fixture
def session() -> SessionState:
    state = SessionState(
        persona_name="Aria",
        location_name="Ravenhold",
        world=WorldState(month="Frostfall", day="3", day_segment="dusk", weather="snow"),
    )
    state.add_message(ChatMessage(role="user", text="We ride for the old mill at dawn.", timestamp=990.0))
    return state


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def lore_corpus() -> StaticCorpus:
    return StaticCorpus([
        LoreDocument(id="mill", text="The old mill burned during the winter siege."),
        LoreDocument(id="ravenhold", text="Ravenhold is a walled town on the northern road."),
        LoreDocument(id="dawn", text="Dawn bells ring twice in Ravenhold; the mill gate opens at dawn."),
        LoreDocument(id="sea", text="Salt traders sail from the southern coast."),
    ])


@pytest.fixture
def npc_tracker(fake_clock: FakeClock) -> NpcPresenceTracker:
    tracker = NpcPresenceTracker(window_seconds=600.0, clock=fake_clock)
    tracker.register(NpcProfile(id="mira", name="Mira", persona="Innkeeper of the Gilded Goose"))
    tracker.register(NpcProfile(id="tobin", name="Tobin", aliases=("the smith",), persona="Blacksmith"))
    tracker.register(NpcProfile(id="vale", name="Captain Vale", persona="Watch captain"))
    return tracker


@pytest.fixture
def make_producer() -> type[StaticProducer]:
    return StaticProducer


@pytest.fixture
def manifest_source_factory() -> type[FakeManifestSource]:
    return FakeManifestSource


@pytest.fixture
def llm_factory() -> type[FakeLLM]:
    return FakeLLM


# === 辅助函数 ===


def predictions(**costs: int) -> list[ComponentPrediction]:
    """predictions(guard=40, header=100) → 预测列表。"""
    return [ComponentPrediction(name=name, tokens=tokens, text="x" * (tokens * 4)) for name, tokens in costs.items()]


@pytest.fixture
def make_predictions():
    return predictions


# === Pytest 配置 ===


def pytest_configure(config: Any) -> None:
    """Pytest 配置钩子。"""
    config.addinivalue_line(
        "markers", "integration: 标记集成测试（需要多个模块协作）"
    )
