"""
STRES Context 结构化异常体系。

所有异常遵循"三段式"规范：What / Why / How to fix。
"""

from stres_context.errors.exceptions import (
    ConfigLoadError,
    ConfigValidationError,
    ProducerError,
    PublishError,
    StresContextError,
    TokenizerError,
    UnknownComponentError,
    UnknownProfileError,
)

__all__ = [
    "ConfigLoadError",
    "ConfigValidationError",
    "ProducerError",
    "PublishError",
    "StresContextError",
    "TokenizerError",
    "UnknownComponentError",
    "UnknownProfileError",
]
