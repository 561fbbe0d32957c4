"""
STRES Context 数据模型。

每轮触发都会重新计算的临时数据（预测、分配决策、输出、运行报告），
以及 Producer / Sink 边界上的 Result 类型。
"""

from stres_context.models.prediction import (
    AllocationDecision,
    ComponentOutput,
    ComponentPrediction,
    InjectionPosition,
    SlotRole,
    SlotSpec,
)
from stres_context.models.report import OrchestratorState, RunReport
from stres_context.models.result import Result

__all__ = [
    "AllocationDecision",
    "ComponentOutput",
    "ComponentPrediction",
    "InjectionPosition",
    "OrchestratorState",
    "Result",
    "RunReport",
    "SlotRole",
    "SlotSpec",
]
