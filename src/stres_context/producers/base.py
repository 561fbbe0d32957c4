"""
Producer 协议与基类。

每个 Producer 负责一类上下文片段：给出候选文本和预测成本。
所有昂贵的 I/O（拉取世界清单、精确计数）都在 predict() 中完成，
分配和裁剪阶段只做纯计算。
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from stres_context.config.defaults import default_slot
from stres_context.config.schema import BudgetConfig
from stres_context.models.prediction import ComponentPrediction, SlotSpec
from stres_context.tokenizer.estimator import TokenEstimator

logger = logging.getLogger(__name__)


@runtime_checkable
class Producer(Protocol):
    """
    Producer 协议。

    最小实现示例::

        class WeatherProducer:
            name = "weather"
            slot = SlotSpec(key="STRES_WEATHER")

            def is_enabled(self) -> bool:
                return True

            def is_sticky(self) -> bool:
                return False

            def max_tokens(self) -> int:
                return 40

            async def predict(self) -> ComponentPrediction:
                return ComponentPrediction(name=self.name, tokens=3, text="Rain.")
    """

    name: str
    slot: SlotSpec

    def is_enabled(self) -> bool:
        ...

    def is_sticky(self) -> bool:
        ...

    def max_tokens(self) -> int:
        ...

    async def predict(self) -> ComponentPrediction:
        ...


class BaseProducer:
    """
    Producer 基类：从共享的 BudgetConfig 读取开关与上限，
    渲染文本、估算成本并按 max_tokens 封顶。

    子类只需实现 render()，需要附带观测数据时覆盖 extras()。

    属性:
        name: 组件名（对应 BudgetConfig.components 的键）
        slot: 注入槽元数据
    """

    name: str = ""

    def __init__(
        self,
        config: BudgetConfig,
        estimator: TokenEstimator | None = None,
        slot: SlotSpec | None = None,
    ) -> None:
        self.config = config
        self.estimator = estimator or TokenEstimator()
        self.slot = slot or default_slot(self.name)

    def is_enabled(self) -> bool:
        return self.config.is_enabled(self.name)

    def is_sticky(self) -> bool:
        component = self.config.component(self.name)
        return component is not None and component.sticky

    def max_tokens(self) -> int:
        component = self.config.component(self.name)
        return component.max_tokens if component is not None else 0

    async def predict(self) -> ComponentPrediction:
        """
        渲染候选文本并预测成本。

        禁用的组件不渲染，直接返回 0 tokens、空文本。
        """
        if not self.is_enabled():
            return ComponentPrediction.empty(self.name)

        text = (await self.render()).strip()
        if not text:
            return ComponentPrediction(name=self.name, tokens=0, text="", extras=self.extras())

        tokens = await self.estimator.estimate(text)
        capped = min(tokens, self.max_tokens())
        if capped < tokens and logger.isEnabledFor(logging.DEBUG):
            logger.debug("[%s] 预测 %d tokens，按上限封顶为 %d", self.name, tokens, capped)

        return ComponentPrediction(
            name=self.name,
            tokens=capped,
            text=text,
            extras=self.extras(),
            capped=capped < tokens,
        )

    async def render(self) -> str:
        """生成候选文本（子类实现）。"""
        raise NotImplementedError

    def extras(self) -> dict[str, Any]:
        """最近一次渲染的附带数据，仅用于观测。"""
        return {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, slot={self.slot.key!r})"
