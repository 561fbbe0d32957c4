"""
可观测性 — 运行报告的内存遥测。
"""

from stres_context.observability.telemetry import TelemetryLog, TelemetrySummary

__all__ = ["TelemetryLog", "TelemetrySummary"]
