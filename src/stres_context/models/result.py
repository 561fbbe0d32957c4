"""
Result 类型 — Producer 与 Sink 边界上的显式成功/失败值。

编排器不让任何异常逃逸到宿主，但失败也不能被静默吞掉：
predict() 和 publish() 的结果统一包装为 Result，写入运行报告，
测试可以直接断言哪个组件失败了、为什么失败。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from stres_context.errors.exceptions import StresContextError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    成功值或结构化错误，二者必居其一。

    用法::

        result = Result.success(prediction)
        if result.ok:
            use(result.value)
        else:
            logger.warning(result.error.what)
    """

    value: T | None = None
    error: StresContextError | None = None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: StresContextError) -> Result[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """成功时返回值，失败时返回 default。"""
        if self.error is None and self.value is not None:
            return self.value
        return default
