"""
STRES Context 配置模块。

提供预算配置 Schema、YAML 加载、默认值合并和配置命令入口。
"""

from stres_context.config.defaults import PROFILES, ProfilePreset
from stres_context.config.editor import BudgetConfigEditor
from stres_context.config.loader import (
    dump_config,
    find_config_file,
    load_config,
    merge_defaults,
    validate_config_file,
)
from stres_context.config.schema import BudgetConfig, ComponentConfig, StresConfig

__all__ = [
    "PROFILES",
    "BudgetConfig",
    "BudgetConfigEditor",
    "ComponentConfig",
    "ProfilePreset",
    "StresConfig",
    "dump_config",
    "find_config_file",
    "load_config",
    "merge_defaults",
    "validate_config_file",
]
