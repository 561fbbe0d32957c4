"""
基于字符数的 Token 粗估计数器（Fallback）。

采用 ``ceil(字符数 / 4)`` 的固定公式。裁剪器使用同一个比例
（allowed_tokens * 4 个字符）换算字符预算，两者必须保持一致，
否则裁剪后的文本再次估算时会超出配额。
"""

from __future__ import annotations

import math

CHARS_PER_TOKEN = 4


class CharBasedCounter:
    """
    基于字符数的 Token 粗估计数器。

    用法::

        counter = CharBasedCounter()
        counter.count("Hello, world!")  # 4
    """

    def __init__(self, chars_per_token: int = CHARS_PER_TOKEN) -> None:
        """
        参数:
            chars_per_token: 每个 Token 对应的字符数（必须为正）
        """
        self._chars_per_token = max(1, int(chars_per_token))

    def count(self, text: str | None) -> int:
        """空文本返回 0，否则返回 ceil(len / chars_per_token)。"""
        if not text:
            return 0
        return math.ceil(len(text) / self._chars_per_token)

    @property
    def name(self) -> str:
        return f"char_based:{self._chars_per_token}"
