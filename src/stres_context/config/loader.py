"""
配置加载与默认值合并。

本模块负责：
1. 从文件路径或默认搜索路径加载 YAML 配置
2. 把宿主的 camelCase 键和旧版 ``degrade: {order: [...]}`` 写法归一化
3. 将部分配置深度合并到默认值之上（merge_defaults，纯函数）
4. 使用 Pydantic Schema 一次性校验，并给出字段级错误信息
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from stres_context.config.defaults import (
    DEFAULT_COMPONENTS,
    DEFAULT_CONTEXT_TARGET,
    DEFAULT_CUSHION,
    DEFAULT_DEGRADE_ORDER,
    DEFAULT_PROFILE,
    DEFAULT_RESERVE,
)
from stres_context.config.schema import BudgetConfig, StresConfig
from stres_context.errors import ConfigLoadError, ConfigValidationError

logger = logging.getLogger(__name__)

_SEARCH_PATHS = [
    Path("stres_context.yaml"),
    Path("stres_context.yml"),
    Path(".stres/budget.yaml"),
]

_KEY_ALIASES = {
    "contextTarget": "context_target",
    "degradeOrder": "degrade_order",
    "maxTokens": "max_tokens",
    "topK": "top_k",
}


def default_budget_dict() -> dict[str, Any]:
    """默认预算配置的普通字典形式（每次返回新副本）。"""
    return {
        "profile": DEFAULT_PROFILE,
        "context_target": DEFAULT_CONTEXT_TARGET,
        "cushion": DEFAULT_CUSHION,
        "reserve": DEFAULT_RESERVE,
        "components": copy.deepcopy(DEFAULT_COMPONENTS),
        "degrade_order": list(DEFAULT_DEGRADE_ORDER),
    }


def merge_defaults(partial: dict[str, Any] | None = None) -> BudgetConfig:
    """
    将部分预算配置合并到默认值之上，校验后返回 BudgetConfig。

    纯函数：不修改 partial，不读取全局状态。组件级别也做深度合并，
    因此 ``{"components": {"rag": {"enabled": True}}}`` 只打开 rag，
    其上限和 sticky 保持默认。

    参数:
        partial: 部分配置（接受 snake_case 或 camelCase 键）

    返回:
        校验后的 BudgetConfig

    异常:
        ConfigValidationError: 字段类型无法接受
    """
    merged = _merge_budget(partial)
    try:
        return BudgetConfig(**merged)
    except ValidationError as e:
        raise _to_config_error(e, "<budget>", prefix="budget") from e


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> StresConfig:
    """
    加载并校验完整配置。

    加载优先级：
    1. 显式指定的路径
    2. 当前目录下的默认搜索路径
    3. 包内置的默认配置

    参数:
        path: YAML 文件路径。None 时自动搜索默认路径。
        overrides: 运行时覆盖（合并到 YAML 配置之上）

    返回:
        StresConfig 实例

    异常:
        ConfigLoadError: 文件不存在或格式错误
        ConfigValidationError: 配置校验失败
    """
    raw_config: dict[str, Any] = {}
    source = str(path) if path else "<default>"

    if path is not None:
        raw_config = _load_yaml_file(Path(path))
    else:
        found = find_config_file()
        if found is not None:
            logger.info("自动发现配置文件：%s", found)
            raw_config = _load_yaml_file(found)
            source = str(found)
        else:
            logger.info("未找到配置文件，使用默认配置。")

    if overrides:
        raw_config = _deep_merge(
            _normalize_budget_section(raw_config),
            _normalize_budget_section(overrides),
        )

    raw_config = dict(raw_config)
    raw_config["budget"] = _merge_budget(raw_config.get("budget"))

    try:
        return StresConfig(**raw_config)
    except ValidationError as e:
        raise _to_config_error(e, source) from e


def find_config_file(base_dir: str | Path | None = None) -> Path | None:
    """
    按搜索顺序返回第一个存在的配置文件。

    顺序：stres_context.yaml → stres_context.yml → .stres/budget.yaml
    """
    root = Path(base_dir) if base_dir is not None else Path.cwd()
    for search_path in _SEARCH_PATHS:
        candidate = root / search_path
        if candidate.exists():
            return candidate
    return None


def validate_config_file(path: str | Path) -> list[str]:
    """
    校验配置文件，返回错误列表（空列表表示通过）。

    不抛出异常，供 CLI 的 validate 命令使用。
    """
    errors: list[str] = []

    try:
        load_config(path=path)
    except ConfigLoadError as e:
        errors.append(e.full_message)
    except ConfigValidationError as e:
        errors.append(e.full_message)

    return errors


def dump_config(config: StresConfig) -> str:
    """把配置序列化为 YAML（预算分区使用宿主的 camelCase 键）。"""
    data = config.model_dump(exclude_none=True)
    data["budget"] = config.budget.to_dict()
    return yaml.safe_dump(data, allow_unicode=True, sort_keys=False)


def _merge_budget(partial: Any) -> dict[str, Any]:
    base = default_budget_dict()
    if partial is None:
        return base
    if isinstance(partial, BudgetConfig):
        partial = partial.model_dump()
    if not isinstance(partial, dict):
        raise ConfigValidationError(
            what="预算配置必须是字典（mapping）。",
            why=f"实际类型为 {type(partial).__name__}。",
            how="请使用键值对形式，例如 {'contextTarget': 2000, 'cushion': 200}。",
            field_path="budget",
        )

    normalized = _normalize_keys(partial)
    components = normalized.pop("components", None) or {}
    merged = _deep_merge(base, normalized)

    if not isinstance(components, dict):
        raise ConfigValidationError(
            what="budget.components 必须是 组件名 → 配置 的字典。",
            why=f"实际类型为 {type(components).__name__}。",
            how="例如：components: { rag: { enabled: true, maxTokens: 300 } }",
            field_path="budget.components",
        )
    for name, spec in components.items():
        key = str(name).strip().lower()
        current = merged["components"].get(key, {})
        if spec is None:
            spec = {}
        if not isinstance(spec, dict):
            raise ConfigValidationError(
                what=f"组件 '{key}' 的配置必须是字典。",
                why=f"实际类型为 {type(spec).__name__}。",
                how="例如：{ enabled: true, maxTokens: 300, sticky: false }",
                field_path=f"budget.components.{key}",
            )
        merged["components"][key] = _deep_merge(current, _normalize_keys(spec))

    return merged


def _normalize_budget_section(data: dict[str, Any]) -> dict[str, Any]:
    """把根配置中 budget 分区及其组件的键统一为 snake_case。"""
    budget = data.get("budget")
    if not isinstance(budget, dict):
        return data
    normalized = _normalize_keys(budget)
    components = normalized.get("components")
    if isinstance(components, dict):
        normalized["components"] = {
            name: _normalize_keys(spec) if isinstance(spec, dict) else spec
            for name, spec in components.items()
        }
    out = dict(data)
    out["budget"] = normalized
    return out


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        out[_KEY_ALIASES.get(key, key)] = value
    degrade = out.pop("degrade", None)
    if isinstance(degrade, dict) and "order" in degrade and "degrade_order" not in out:
        out["degrade_order"] = degrade["order"]
    return out


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """加载并解析 YAML 文件。"""
    if not path.exists():
        raise ConfigLoadError(
            what=f"配置文件 '{path}' 不存在。",
            why=f"在路径 '{path.absolute()}' 下未找到该文件。",
            how="请检查文件路径是否正确。"
                "可以使用 'stres-context init' 在当前目录生成默认配置文件。",
            file_path=str(path),
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(
            what=f"无法读取配置文件 '{path}'。",
            why=str(e),
            how="请检查文件权限和编码（需要 UTF-8）。",
            file_path=str(path),
        ) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(
            what=f"配置文件 '{path}' 的 YAML 格式无效。",
            why=str(e),
            how="请使用 YAML 格式校验工具检查文件语法。",
            file_path=str(path),
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            what=f"配置文件 '{path}' 的根元素必须是字典（mapping）。",
            why=f"实际类型为 {type(data).__name__}。",
            how="请确保 YAML 文件的根元素是键值对形式，例如：\n"
                "  budget:\n"
                "    contextTarget: 2000",
            file_path=str(path),
        )

    return data


def _to_config_error(
    error: ValidationError, source: str, prefix: str = ""
) -> ConfigValidationError:
    """将 Pydantic 校验错误转换为用户友好的格式。"""
    error_details = []
    for err in error.errors():
        parts = [str(loc) for loc in err["loc"]]
        if prefix:
            parts.insert(0, prefix)
        field_path = " → ".join(parts)
        error_details.append(f"  字段 '{field_path}': {err['msg']}")

    return ConfigValidationError(
        what=f"配置 '{source}' 校验失败（{len(error.errors())} 个错误）。",
        why="\n".join(error_details),
        how="请修正上述字段。可以使用 'stres-context validate <path>' 命令进行预校验。",
        config_path=source,
    )


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """深度合并两个字典。override 中的值优先。"""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result
