"""
TokenCounter 协议定义。

任何实现了 count() 和 name 的对象都可以作为精确计数器注入 TokenEstimator，
无需显式继承。count() 既可以是普通方法，也可以是协程
（例如宿主提供的异步 getTokenCount 接口）。
"""

from __future__ import annotations

from typing import Awaitable, Protocol, Union, runtime_checkable


@runtime_checkable
class TokenCounter(Protocol):
    """
    Token 计数器协议。

    内置实现：
    - TiktokenCounter：基于 tiktoken 的 BPE 计数
    - CharBasedCounter：字符数 / 4 的粗估（零依赖）

    最小实现示例::

        class HostCounter:
            async def count(self, text: str) -> int:
                return await host.get_token_count(text)

            @property
            def name(self) -> str:
                return "host"
    """

    def count(self, text: str) -> Union[int, Awaitable[int]]:
        """计算文本的 Token 数量。"""
        ...

    @property
    def name(self) -> str:
        """Tokenizer 名称标识。"""
        ...
