"""
编排流水线 — 预测、分配、裁剪与发布。
"""

from stres_context.models.report import OrchestratorState, RunReport
from stres_context.pipeline.orchestrator import CancellationToken, ContextOrchestrator
from stres_context.pipeline.sink import InjectionSink, MemorySink, PublishedSlot, publish_output
from stres_context.pipeline.triggers import (
    CHAT_CHANGED,
    GENERATION_ENDED,
    HOST_EVENTS,
    MESSAGE_RECEIVED,
    MESSAGE_SENT,
    EventBus,
    EventSource,
    PeriodicTrigger,
)

__all__ = [
    "CHAT_CHANGED",
    "GENERATION_ENDED",
    "HOST_EVENTS",
    "MESSAGE_RECEIVED",
    "MESSAGE_SENT",
    "CancellationToken",
    "ContextOrchestrator",
    "EventBus",
    "EventSource",
    "InjectionSink",
    "MemorySink",
    "OrchestratorState",
    "PeriodicTrigger",
    "PublishedSlot",
    "RunReport",
    "publish_output",
]
