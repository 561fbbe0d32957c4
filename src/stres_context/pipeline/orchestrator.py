"""
ContextOrchestrator — 每次触发的预测 → 分配 → 裁剪 → 发布。

1. **Predicting**：所有 Producer 并发 predict()；失败包装为 ProducerError，
   该组件按 0 tokens、空文本处理
2. **Allocating**：一次 BudgetAllocator.allocate()
3. **Trimming**：配额 > 0 的按配额裁剪，配额为 0 的输出空文本
4. **Publishing**：每个组件调用一次 Sink（空文本同样发布，用于清空槽位）；
   单个槽位失败不影响其他槽位

新的触发会取消仍在进行的运行（阶段之间检查 CancellationToken）；
发布在锁内进行，两次运行的写入不会交错，最后发布的一次生效。
run() 从不向宿主抛出异常。
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Sequence

from stres_context.budget.allocator import BudgetAllocator
from stres_context.config.schema import BudgetConfig
from stres_context.errors import ProducerError, StresContextError
from stres_context.models.prediction import ComponentOutput, ComponentPrediction
from stres_context.models.report import OrchestratorState, RunReport
from stres_context.models.result import Result
from stres_context.observability.telemetry import TelemetryLog
from stres_context.pipeline.sink import InjectionSink, publish_output
from stres_context.pipeline.triggers import HOST_EVENTS, MANUAL, EventSource
from stres_context.producers.base import Producer
from stres_context.trimmer import trim_to_tokens

logger = logging.getLogger(__name__)


class CancellationToken:
    """协作式取消标记。"""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ContextOrchestrator:
    """
    上下文编排器。

    用法::

        orchestrator = ContextOrchestrator(config.budget, producers, sink)
        report = await orchestrator.run(trigger="message_sent")

        # 或者订阅宿主事件
        orchestrator.attach(event_bus)

    属性:
        config: 共享的预算配置（只读；修改通过 BudgetConfigEditor）
        producers: Producer 列表，输出顺序与此一致
        sink: 注入通道
        telemetry: 可选的遥测缓冲区
    """

    def __init__(
        self,
        config: BudgetConfig,
        producers: Sequence[Producer],
        sink: InjectionSink,
        allocator: BudgetAllocator | None = None,
        telemetry: TelemetryLog | None = None,
    ) -> None:
        self.config = config
        self.producers = list(producers)
        self.sink = sink
        self.allocator = allocator or BudgetAllocator()
        self.telemetry = telemetry
        self._state = OrchestratorState.IDLE
        self._current: CancellationToken | None = None
        self._publish_lock = asyncio.Lock()
        self._run_counter = 0
        self._tasks: set[asyncio.Task[RunReport]] = set()
        self._subscriptions: list[tuple[EventSource, str, Any]] = []

        names = [p.name for p in self.producers]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            logger.warning("多个 Producer 使用相同的组件名：%s，后者的预测会覆盖前者。", sorted(duplicates))

    @property
    def state(self) -> OrchestratorState:
        """最近一次运行所处的阶段。"""
        return self._state

    # === 运行 ===

    async def run(self, trigger: str = MANUAL) -> RunReport:
        """
        执行一次完整的运行。

        参数:
            trigger: 触发来源（写入运行报告）

        返回:
            RunReport；被新触发取消时 cancelled=True
        """
        if self._current is not None:
            self._current.cancel()
        token = CancellationToken()
        self._current = token
        self._run_counter += 1
        report = RunReport(run_id=self._run_counter, trigger=trigger)
        started = time.perf_counter()

        try:
            await self._execute(report, token)
        except Exception as e:  # run() 不向宿主传播任何异常
            logger.error("第 %d 次运行在 %s 阶段失败：%s", report.run_id, report.state.value, e)
            report.errors.append(
                e if isinstance(e, StresContextError)
                else StresContextError(
                    what=f"上下文编排在 {report.state.value} 阶段失败。",
                    why=f"{type(e).__name__}: {e}",
                    how="查看日志中的堆栈；下一次触发会重新运行。",
                )
            )
        finally:
            report.elapsed_ms = (time.perf_counter() - started) * 1000
            if self._current is token:
                self._current = None
                self._state = OrchestratorState.IDLE
            if self.telemetry is not None:
                self.telemetry.record(report)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "第 %d 次运行（%s）结束：cancelled=%s errors=%d %.1fms",
                report.run_id,
                trigger,
                report.cancelled,
                len(report.errors),
                report.elapsed_ms,
            )
        return report

    async def _execute(self, report: RunReport, token: CancellationToken) -> None:
        self._enter(report, token, OrchestratorState.PREDICTING)
        results = await asyncio.gather(*(self._predict(p) for p in self.producers))
        predictions: list[ComponentPrediction] = []
        for producer, result in zip(self.producers, results):
            if not result.ok and result.error is not None:
                report.errors.append(result.error)
            prediction = result.unwrap_or(ComponentPrediction.empty(producer.name))
            predictions.append(prediction)
            report.predictions[prediction.name] = prediction
        if self._check_cancelled(report, token):
            return

        self._enter(report, token, OrchestratorState.ALLOCATING)
        decision = self.allocator.allocate(self.config, predictions)
        report.decision = decision

        self._enter(report, token, OrchestratorState.TRIMMING)
        report.outputs = [
            self._trim(
                producer,
                report.predictions.get(producer.name),
                decision.allowance_for(producer.name),
            )
            for producer in self.producers
        ]
        if self._check_cancelled(report, token):
            return

        async with self._publish_lock:
            if self._check_cancelled(report, token):
                return
            self._enter(report, token, OrchestratorState.PUBLISHING)
            for output in report.outputs:
                published = await publish_output(self.sink, output)
                if not published.ok and published.error is not None:
                    report.errors.append(published.error)

        report.state = OrchestratorState.IDLE

    async def _predict(self, producer: Producer) -> Result[ComponentPrediction]:
        try:
            prediction = await producer.predict()
        except Exception as e:  # 单个组件失败按 0 处理
            logger.warning("组件 %s 预测失败，本轮按 0 tokens 处理：%s", producer.name, e)
            return Result.failure(
                ProducerError(
                    what=f"组件 '{producer.name}' 预测失败。",
                    why=f"{type(e).__name__}: {e}",
                    how="检查该组件的数据来源；本轮该组件的槽位将被清空。",
                    component=producer.name,
                )
            )
        if prediction.name != producer.name:
            prediction = ComponentPrediction(
                name=producer.name,
                tokens=prediction.tokens,
                text=prediction.text,
                extras=prediction.extras,
                capped=prediction.capped,
            )
        return Result.success(prediction)

    @staticmethod
    def _trim(
        producer: Producer,
        prediction: ComponentPrediction | None,
        allowance: int,
    ) -> ComponentOutput:
        """
        按配额裁剪候选文本。

        全额拿到预测成本且未封顶的组件原样发布，
        字符启发式只用于部分配额和封顶的预测。
        """
        if prediction is None or allowance <= 0:
            final_text = ""
        elif 0 < prediction.tokens <= allowance and not prediction.capped:
            final_text = prediction.text
        else:
            final_text = trim_to_tokens(prediction.text, allowance)
        return ComponentOutput(name=producer.name, final_text=final_text, slot=producer.slot)

    def _enter(self, report: RunReport, token: CancellationToken, state: OrchestratorState) -> None:
        report.state = state
        if self._current is token:
            self._state = state

    @staticmethod
    def _check_cancelled(report: RunReport, token: CancellationToken) -> bool:
        if token.cancelled:
            report.cancelled = True
            logger.debug("第 %d 次运行在 %s 阶段后被取消", report.run_id, report.state.value)
        return token.cancelled

    # === 事件订阅 ===

    def schedule(self, trigger: str = MANUAL) -> asyncio.Task[RunReport]:
        """在当前事件循环中调度一次运行，不等待其完成。"""
        task = asyncio.get_running_loop().create_task(self.run(trigger=trigger))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def attach(self, source: EventSource, events: Sequence[str] = HOST_EVENTS) -> None:
        """
        订阅宿主事件：每个事件调度一次运行。

        回调返回调度出的 Task，等待回调结果的事件源会一直等到运行结束。
        """
        for event in events:
            def handler(payload: Any = None, _event: str = event) -> asyncio.Task[RunReport]:
                return self.schedule(trigger=_event)

            source.on(event, handler)
            self._subscriptions.append((source, event, handler))
        logger.info("已订阅宿主事件：%s", ", ".join(events))

    def detach(self) -> None:
        for source, event, handler in self._subscriptions:
            source.off(event, handler)
        self._subscriptions.clear()

    async def wait_idle(self) -> None:
        """等待所有已调度的运行结束。"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
