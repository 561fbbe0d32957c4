"""
触发源：宿主事件与定时触发。

宿主在消息发送、消息接收、生成结束和切换聊天时发出事件；
没有事件钩子的宿主可以用 PeriodicTrigger 按固定间隔触发。
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from stres_context.pipeline.orchestrator import ContextOrchestrator

logger = logging.getLogger(__name__)

MESSAGE_SENT = "message_sent"
MESSAGE_RECEIVED = "message_received"
GENERATION_ENDED = "generation_ended"
CHAT_CHANGED = "chat_changed"
PERIODIC = "periodic"
MANUAL = "manual"

HOST_EVENTS = (MESSAGE_SENT, MESSAGE_RECEIVED, GENERATION_ENDED, CHAT_CHANGED)

EventHandler = Callable[..., Any]


@runtime_checkable
class EventSource(Protocol):
    """宿主事件源：按事件名注册和注销回调。"""

    def on(self, event: str, handler: EventHandler) -> None:
        ...

    def off(self, event: str, handler: EventHandler) -> None:
        ...


class EventBus:
    """
    进程内事件总线。

    emit() 并发执行同一事件的全部回调并等待其中的 awaitable；
    单个回调失败只记录日志并计数，不影响其他回调。

    用法::

        bus = EventBus()
        orchestrator.attach(bus)
        await bus.emit("message_sent", {"text": "hello"})
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self.error_count = 0

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def handlers(self, event: str) -> list[EventHandler]:
        return list(self._handlers.get(event, ()))

    @property
    def events(self) -> list[str]:
        return [event for event, handlers in self._handlers.items() if handlers]

    async def emit(self, event: str, payload: Any = None) -> None:
        handlers = self.handlers(event)
        if not handlers:
            return
        await asyncio.gather(*(self._call(event, handler, payload) for handler in handlers))

    async def _call(self, event: str, handler: EventHandler, payload: Any) -> None:
        try:
            result = handler(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:  # 回调之间相互隔离
            self.error_count += 1
            logger.error("事件 %s 的回调执行失败：%s", event, e)


class PeriodicTrigger:
    """
    定时触发编排器。

    用法::

        trigger = PeriodicTrigger(orchestrator, interval_seconds=30)
        trigger.start()
        ...
        await trigger.stop()
    """

    def __init__(self, orchestrator: ContextOrchestrator, interval_seconds: float = 30.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds 必须大于 0")
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """在当前事件循环中启动定时任务（已启动时不重复启动）。"""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.orchestrator.run(trigger=PERIODIC)
            self.runs += 1
