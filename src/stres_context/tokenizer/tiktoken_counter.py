"""
基于 tiktoken 的 Token 计数器。

tiktoken 对 OpenAI 系列模型精确，对其他模型是合理的近似值；
对预算分配来说，这个精度足够。
"""

from __future__ import annotations

import logging

import tiktoken

logger = logging.getLogger(__name__)


class TiktokenCounter:
    """
    基于 tiktoken 的 Token 计数器。

    用法::

        counter = TiktokenCounter()  # 默认 cl100k_base
        counter.count("Hello, world!")

        counter = TiktokenCounter(encoding_name="o200k_base")

    属性:
        encoding_name: tiktoken 编码方案名称
    """

    def __init__(self, encoding_name: str = "cl100k_base") -> None:
        self._encoding_name = encoding_name
        try:
            self._encoding = tiktoken.get_encoding(encoding_name)
        except ValueError as e:
            logger.warning(
                "tiktoken 编码方案 '%s' 加载失败，回退到 cl100k_base。错误：%s",
                encoding_name,
                e,
            )
            self._encoding_name = "cl100k_base"
            self._encoding = tiktoken.get_encoding("cl100k_base")

    @property
    def encoding_name(self) -> str:
        return self._encoding_name

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self._encoding.encode(text))

    @property
    def name(self) -> str:
        return f"tiktoken:{self._encoding_name}"
