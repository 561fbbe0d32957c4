"""
TelemetryLog — 最近 N 次运行的内存环形缓冲区。

用于排查"为什么这一轮某个组件被清空了"：每条记录就是一份 RunReport，
summary() 汇总各组件的平均配额和部分配额次数。
"""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any

from stres_context.models.report import RunReport


@dataclass(frozen=True)
class TelemetrySummary:
    """
    遥测汇总。

    属性:
        runs: 记录的运行数
        cancelled: 被取消的运行数
        error_count: Producer / Sink 错误总数
        mean_allowance: 组件名 → 平均配额（只统计完成分配的运行）
        partial_counts: 组件名 → 拿到部分配额的次数
        mean_elapsed_ms: 平均耗时
    """

    runs: int = 0
    cancelled: int = 0
    error_count: int = 0
    mean_allowance: dict[str, float] = field(default_factory=dict)
    partial_counts: dict[str, int] = field(default_factory=dict)
    mean_elapsed_ms: float = 0.0


class TelemetryLog:
    """
    运行报告的环形缓冲区（默认保留 20 条）。

    用法::

        telemetry = TelemetryLog(keep=20)
        orchestrator = ContextOrchestrator(..., telemetry=telemetry)
        telemetry.latest().decision.summary()
    """

    def __init__(self, keep: int = 20) -> None:
        self.keep = max(1, keep)
        self._records: deque[RunReport] = deque(maxlen=self.keep)

    def record(self, report: RunReport) -> None:
        self._records.append(report)

    def latest(self) -> RunReport | None:
        return self._records[-1] if self._records else None

    def records(self) -> list[RunReport]:
        """按时间顺序（最旧在前）。"""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()

    def summary(self) -> TelemetrySummary:
        reports = list(self._records)
        if not reports:
            return TelemetrySummary()

        totals: Counter[str] = Counter()
        decided = 0
        partials: Counter[str] = Counter()
        for report in reports:
            if report.decision is None:
                continue
            decided += 1
            totals.update(report.decision.allowance)
            if report.decision.partial:
                partials[report.decision.partial] += 1

        mean_allowance = {name: total / decided for name, total in totals.items()} if decided else {}
        return TelemetrySummary(
            runs=len(reports),
            cancelled=sum(1 for r in reports if r.cancelled),
            error_count=sum(len(r.errors) for r in reports),
            mean_allowance=mean_allowance,
            partial_counts=dict(partials),
            mean_elapsed_ms=sum(r.elapsed_ms for r in reports) / len(reports),
        )

    def export(self) -> list[dict[str, Any]]:
        return [report.to_dict() for report in self._records]
