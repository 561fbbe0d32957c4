"""
按 Token 配额裁剪文本，优先保留整行。

字符预算 = allowed_tokens * 4，与 CharBasedCounter 的比例一致。
这是启发式而非精确的 Token 边界，但保证：

- 输出长度不超过 4 * allowed_tokens 个字符
- 确定性且幂等：trim_to_tokens(trim_to_tokens(t, n), n) == trim_to_tokens(t, n)
"""

from __future__ import annotations

from stres_context.tokenizer.fallback import CHARS_PER_TOKEN


def trim_to_tokens(text: str | None, allowed_tokens: int) -> str:
    """
    将文本裁剪到约 allowed_tokens 个 Token。

    参数:
        text: 候选文本
        allowed_tokens: Token 配额；小于 1 时返回空字符串

    返回:
        原文（已满足配额时）、整行前缀，或首行过长时的硬截断
    """
    if allowed_tokens < 1 or not text:
        return ""

    budget = allowed_tokens * CHARS_PER_TOKEN
    if len(text) <= budget:
        return text

    kept: list[str] = []
    used = 0
    for line in text.split("\n"):
        cost = len(line) + (1 if kept else 0)
        if used + cost > budget:
            break
        kept.append(line)
        used += cost

    result = "\n".join(kept)
    if not result.strip():
        # 首行就超出预算
        return text[:budget]
    return result
