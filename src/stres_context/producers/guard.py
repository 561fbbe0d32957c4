"""Guard：约束模型只以当前角色身份发言。"""

from __future__ import annotations

from stres_context.config.defaults import GUARD, GUARD_TEMPLATE
from stres_context.config.schema import BudgetConfig
from stres_context.models.prediction import SlotSpec
from stres_context.producers.base import BaseProducer
from stres_context.producers.state import SessionState
from stres_context.tokenizer.estimator import TokenEstimator


class GuardProducer(BaseProducer):
    """
    渲染角色守卫指令。模板中的 ``{char}`` 替换为当前角色名；
    没有角色名时输出空文本。
    """

    name = GUARD

    def __init__(
        self,
        config: BudgetConfig,
        session: SessionState,
        template: str = GUARD_TEMPLATE,
        estimator: TokenEstimator | None = None,
        slot: SlotSpec | None = None,
    ) -> None:
        super().__init__(config, estimator, slot)
        self.session = session
        self.template = template

    async def render(self) -> str:
        persona = self.session.persona_name.strip()
        if not persona:
            return ""
        return self.template.replace("{char}", persona)
