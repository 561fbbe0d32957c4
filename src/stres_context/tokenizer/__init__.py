"""
STRES Context Token 估算模块。

提供可插拔的精确计数器和永不失败的字符启发式兜底。
"""

from stres_context.tokenizer.estimator import TokenEstimator, estimate_heuristic
from stres_context.tokenizer.fallback import CharBasedCounter
from stres_context.tokenizer.protocol import TokenCounter
from stres_context.tokenizer.registry import clear_cache, get_tokenizer, register_tokenizer
from stres_context.tokenizer.tiktoken_counter import TiktokenCounter

__all__ = [
    "CharBasedCounter",
    "TiktokenCounter",
    "TokenCounter",
    "TokenEstimator",
    "clear_cache",
    "estimate_heuristic",
    "get_tokenizer",
    "register_tokenizer",
]
