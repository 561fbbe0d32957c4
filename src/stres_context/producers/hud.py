"""玩家面板（HUD）。"""

from __future__ import annotations

from stres_context.config.defaults import HUD, HUD_PREFIX
from stres_context.config.schema import BudgetConfig
from stres_context.models.prediction import SlotSpec
from stres_context.producers.base import BaseProducer
from stres_context.producers.state import SessionState
from stres_context.tokenizer.estimator import TokenEstimator


class HudProducer(BaseProducer):
    """
    渲染 ``📊 Player Sheet`` 标题和 ``label: value`` 行。
    没有面板条目时输出空文本。
    """

    name = HUD

    def __init__(
        self,
        config: BudgetConfig,
        session: SessionState,
        prefix: str = HUD_PREFIX,
        estimator: TokenEstimator | None = None,
        slot: SlotSpec | None = None,
    ) -> None:
        super().__init__(config, estimator, slot)
        self.session = session
        self.prefix = prefix

    async def render(self) -> str:
        lines = []
        for entry in self.session.hud_entries:
            label = entry.label or entry.key
            lines.append(f"{label}: {entry.value}" if entry.value else label)
        if not lines:
            return ""
        return "\n".join([self.prefix, *lines])
