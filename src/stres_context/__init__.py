"""
STRES Context — 叙事聊天的上下文预算分配与注入流水线。

每轮对话前，八类辅助上下文（角色守卫、场景头、世界导语、滚动摘要、
检索片段、NPC 记忆、玩家面板、战斗头）争夺一个很小的 Token 预算。
本包预测每一类的成本，按常驻 + 降级顺序分配配额，裁剪文本并写入宿主的注入槽。

快速上手::

    from stres_context import StresContext

    stres = StresContext()
    stres.session.persona_name = "Aria"
    report = await stres.on_message("user", "We ride for Ravenhold at dawn.")
    print(report.decision.summary())
"""

from stres_context.budget import BudgetAllocator
from stres_context.config import (
    PROFILES,
    BudgetConfig,
    BudgetConfigEditor,
    ComponentConfig,
    StresConfig,
    load_config,
    merge_defaults,
)
from stres_context.errors import (
    ConfigLoadError,
    ConfigValidationError,
    ProducerError,
    PublishError,
    StresContextError,
    UnknownComponentError,
    UnknownProfileError,
)
from stres_context.facade import StresContext
from stres_context.models import (
    AllocationDecision,
    ComponentOutput,
    ComponentPrediction,
    InjectionPosition,
    OrchestratorState,
    Result,
    RunReport,
    SlotRole,
    SlotSpec,
)
from stres_context.observability import TelemetryLog
from stres_context.pipeline import (
    ContextOrchestrator,
    EventBus,
    InjectionSink,
    MemorySink,
    PeriodicTrigger,
)
from stres_context.producers import SessionState, build_default_producers
from stres_context.tokenizer import TokenEstimator, estimate_heuristic
from stres_context.trimmer import trim_to_tokens

__version__ = "0.1.0"

__all__ = [
    "PROFILES",
    "AllocationDecision",
    "BudgetAllocator",
    "BudgetConfig",
    "BudgetConfigEditor",
    "ComponentConfig",
    "ComponentOutput",
    "ComponentPrediction",
    "ConfigLoadError",
    "ConfigValidationError",
    "ContextOrchestrator",
    "EventBus",
    "InjectionPosition",
    "InjectionSink",
    "MemorySink",
    "OrchestratorState",
    "PeriodicTrigger",
    "ProducerError",
    "PublishError",
    "Result",
    "RunReport",
    "SessionState",
    "SlotRole",
    "SlotSpec",
    "StresConfig",
    "StresContext",
    "StresContextError",
    "TelemetryLog",
    "TokenEstimator",
    "UnknownComponentError",
    "UnknownProfileError",
    "__version__",
    "build_default_producers",
    "estimate_heuristic",
    "load_config",
    "merge_defaults",
    "trim_to_tokens",
]
