"""
结构化异常体系 — 错误信息即文档。

每条异常遵循"三段式"规范：
1. What went wrong（发生了什么）
2. Why it happened（为什么发生）
3. How to fix it（怎么修）

流水线内部的异常（ProducerError / PublishError）不会抛给宿主，
而是被编排器包装为 Result 记录到运行报告中。配置命令和加载器的异常
则直接抛出，由 CLI 或宿主 UI 负责展示。

示例::

    UnknownComponentError(
        what="未知的上下文组件 'lore'。",
        why="BudgetConfig.components 中没有名为 'lore' 的组件。",
        how="可用组件：guard, header, primer, summaries, rag, npc, hud, combat。",
        component="lore",
    )
"""

from __future__ import annotations

from typing import Any


class StresContextError(Exception):
    """
    STRES Context 异常基类。

    属性:
        what: 发生了什么
        why: 为什么发生
        how: 怎么修复
        details: 额外的上下文信息（用于调试）
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.what = what
        self.why = why
        self.how = how
        self.details = details or {}

        parts = [what]
        if why:
            parts.append(f"→ 原因：{why}")
        if how:
            parts.append(f"→ 修复建议：{how}")

        self.full_message = "\n".join(parts)
        super().__init__(self.full_message)

    def __str__(self) -> str:
        return self.full_message

    def to_dict(self) -> dict[str, Any]:
        """转换为字典格式，用于遥测记录和 JSON 输出。"""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "what": self.what,
        }
        if self.why:
            result["why"] = self.why
        if self.how:
            result["how"] = self.how
        if self.details:
            result["details"] = self.details
        return result


# === 配置相关异常 ===


class ConfigValidationError(StresContextError):
    """
    配置校验异常。

    当预算配置（YAML 或运行时覆盖）字段不合法时抛出。

    示例::

        raise ConfigValidationError(
            what="预算配置 'stres_context.yaml' 校验失败（1 个错误）。",
            why="  字段 'components → rag → max_tokens': Input should be a valid integer",
            how="请修正字段类型，或运行 'stres-context validate' 预校验。",
            config_path="stres_context.yaml",
        )
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        config_path: str = "",
        field_path: str = "",
        **kwargs: Any,
    ) -> None:
        details = {
            "config_path": config_path,
            "field_path": field_path,
        }
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.config_path = config_path
        self.field_path = field_path


class ConfigLoadError(StresContextError):
    """配置文件不存在、无法读取或 YAML 无效时抛出。"""

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        file_path: str = "",
        **kwargs: Any,
    ) -> None:
        details = {"file_path": file_path}
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.file_path = file_path


class UnknownComponentError(StresContextError):
    """
    未知组件异常。

    配置命令引用了 BudgetConfig.components 中不存在的组件名时抛出。
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        component: str = "",
        available: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        details: dict[str, Any] = {"component": component}
        if available:
            details["available"] = available
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.component = component


class UnknownProfileError(StresContextError):
    """预设档位名（Lean / Balanced / Rich 之外）无法识别时抛出。"""

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        profile: str = "",
        **kwargs: Any,
    ) -> None:
        details = {"profile": profile}
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.profile = profile


# === 流水线相关异常 ===


class ProducerError(StresContextError):
    """
    Producer 预测失败。

    编排器捕获 predict() 中的任意异常并包装为 ProducerError，
    对应组件本轮按 0 tokens、空文本处理。

    示例::

        ProducerError(
            what="组件 'primer' 预测失败。",
            why="ConnectionError: manifest endpoint unreachable",
            how="检查世界清单服务是否可用；本轮该组件将被清空。",
            component="primer",
        )
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        component: str = "",
        **kwargs: Any,
    ) -> None:
        details = {"component": component}
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.component = component


class PublishError(StresContextError):
    """注入槽写入失败。编排器记录后继续发布其他组件。"""

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        slot_key: str = "",
        **kwargs: Any,
    ) -> None:
        details = {"slot_key": slot_key}
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.slot_key = slot_key


# === Tokenizer 相关异常 ===


class TokenizerError(StresContextError):
    """
    精确 Tokenizer 异常。

    TokenEstimator 捕获此异常后回退到字符启发式，不会向上传播。
    """

    pass
