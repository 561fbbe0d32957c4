"""
Tokenizer 注册表 — 根据模型名选择精确计数器。

模型名经常带日期后缀，使用前缀匹配；无法匹配或 tiktoken 加载失败时
回退到 CharBasedCounter。
"""

from __future__ import annotations

import logging

from stres_context.tokenizer.fallback import CharBasedCounter
from stres_context.tokenizer.protocol import TokenCounter
from stres_context.tokenizer.tiktoken_counter import TiktokenCounter

logger = logging.getLogger(__name__)

_MODEL_TO_ENCODING: dict[str, str] = {
    "gpt-4o": "o200k_base",
    "gpt-4o-mini": "o200k_base",
    "gpt-4.1": "o200k_base",
    "gpt-4": "cl100k_base",
    "gpt-3.5": "cl100k_base",
    "o1": "o200k_base",
    "o3": "o200k_base",
    "o4-mini": "o200k_base",
    # 非 OpenAI 模型用 cl100k_base 近似
    "claude": "cl100k_base",
    "gemini": "cl100k_base",
    "llama": "cl100k_base",
    "mistral": "cl100k_base",
    "qwen": "cl100k_base",
    "deepseek": "cl100k_base",
}

_counter_cache: dict[str, TokenCounter] = {}

_custom_counters: dict[str, TokenCounter] = {}


def get_tokenizer(model: str) -> TokenCounter:
    """
    根据模型名获取 Token 计数器。

    查找优先级：
    1. 用户注册的自定义计数器
    2. 模型名前缀匹配的 tiktoken 编码
    3. CharBasedCounter

    参数:
        model: 模型名称（如 "gpt-4o-mini"、"openrouter/claude-3.5"）
    """
    if model in _custom_counters:
        return _custom_counters[model]

    if model in _counter_cache:
        return _counter_cache[model]

    encoding_name = _find_encoding(model)

    if encoding_name:
        try:
            counter: TokenCounter = TiktokenCounter(encoding_name)
            _counter_cache[model] = counter
            return counter
        except Exception as e:  # tiktoken 下载编码文件可能因网络失败
            logger.warning(
                "为模型 '%s' 创建 tiktoken 计数器失败（编码：%s），"
                "回退到字符计数器。错误：%s",
                model,
                encoding_name,
                e,
            )

    logger.info("模型 '%s' 未找到专用 Tokenizer，使用字符计数器（近似值）。", model)
    counter = CharBasedCounter()
    _counter_cache[model] = counter
    return counter


def _find_encoding(model: str) -> str | None:
    """前缀匹配编码方案；路由前缀（如 openrouter/）会被去掉。"""
    model_lower = model.lower().rsplit("/", 1)[-1]

    for prefix in sorted(_MODEL_TO_ENCODING, key=len, reverse=True):
        if model_lower.startswith(prefix):
            return _MODEL_TO_ENCODING[prefix]

    return None


def register_tokenizer(model: str, counter: TokenCounter) -> None:
    """
    注册自定义 Token 计数器，优先于内置的 tiktoken。

    异常:
        TypeError: counter 未实现 TokenCounter 协议
    """
    if not isinstance(counter, TokenCounter):
        raise TypeError(
            f"counter 必须实现 TokenCounter 协议，"
            f"但 {type(counter).__name__} 缺少必要的方法。"
            f"需要实现：count(text) -> int, name -> str"
        )
    _custom_counters[model] = counter
    logger.info("已为模型 '%s' 注册自定义 Tokenizer: %s", model, counter.name)


def clear_cache() -> None:
    """清除计数器缓存和自定义注册。通常仅在测试中使用。"""
    _counter_cache.clear()
    _custom_counters.clear()
