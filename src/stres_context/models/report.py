"""
RunReport — 一次编排运行的完整记录。
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from stres_context.errors.exceptions import StresContextError
from stres_context.models.prediction import AllocationDecision, ComponentOutput, ComponentPrediction


class OrchestratorState(str, Enum):
    """编排器状态：Idle → Predicting → Allocating → Trimming → Publishing → Idle。"""

    IDLE = "idle"
    PREDICTING = "predicting"
    ALLOCATING = "allocating"
    TRIMMING = "trimming"
    PUBLISHING = "publishing"


@dataclass
class RunReport:
    """
    一次运行的观测记录。

    属性:
        run_id: 运行序号（单调递增）
        trigger: 触发来源（事件名、periodic 或 manual）
        state: 运行结束时所处的阶段；完整跑完为 IDLE
        predictions: 组件名 → 预测（失败的组件为 0 tokens）
        decision: 分配决策（在分配前被取消时为 None）
        outputs: 裁剪后的输出
        errors: Producer / Sink 失败
        cancelled: 是否被新的触发取消
        elapsed_ms: 耗时（毫秒）
        started_at: 开始时间（Unix 秒）
    """

    run_id: int
    trigger: str
    state: OrchestratorState = OrchestratorState.IDLE
    predictions: dict[str, ComponentPrediction] = field(default_factory=dict)
    decision: AllocationDecision | None = None
    outputs: list[ComponentOutput] = field(default_factory=list)
    errors: list[StresContextError] = field(default_factory=list)
    cancelled: bool = False
    elapsed_ms: float = 0.0
    started_at: float = field(default_factory=time.time)

    @property
    def published(self) -> bool:
        """是否走完了发布阶段。"""
        return not self.cancelled and self.state == OrchestratorState.IDLE and bool(self.outputs)

    def output_for(self, name: str) -> ComponentOutput | None:
        for output in self.outputs:
            if output.name == name:
                return output
        return None

    def to_dict(self) -> dict[str, Any]:
        decision = self.decision
        return {
            "run_id": self.run_id,
            "trigger": self.trigger,
            "state": self.state.value,
            "cancelled": self.cancelled,
            "elapsed_ms": round(self.elapsed_ms, 3),
            "predictions": {name: p.tokens for name, p in self.predictions.items()},
            "decision": None if decision is None else {
                "limit": decision.limit,
                "total_allocated": decision.total_allocated,
                "remaining": decision.remaining,
                "sticky_total": decision.sticky_total,
                "partial": decision.partial,
                "dropped": list(decision.dropped),
                "allowance": dict(decision.allowance),
            },
            "outputs": {o.name: len(o.final_text) for o in self.outputs},
            "errors": [e.to_dict() for e in self.errors],
        }
