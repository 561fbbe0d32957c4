"""
配置命令 — init / show / set / component / order / profile。

修改类命令都通过 BudgetConfigEditor 改动配置，再整体写回 YAML 文件。
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from stres_context.cli.utils import (
    DEFAULT_CONFIG_FILE,
    create_config_table,
    create_console,
    handle_error,
    load_cli_config,
    print_error,
    print_success,
    print_warning,
    save_cli_config,
)
from stres_context.config.editor import BudgetConfigEditor
from stres_context.config.schema import StresConfig
from stres_context.errors import StresContextError

console = create_console()


def init_command(path: str | None = None, force: bool = False) -> None:
    """写出默认配置文件。"""
    target = Path(path or DEFAULT_CONFIG_FILE)
    if target.exists() and not force:
        print_warning(f"{target} 已存在，跳过（使用 --force 可强制覆盖）")
        return
    save_cli_config(StresConfig(), target)
    print_success(f"已生成默认配置：{target}")


def show_command(path: str | None = None, as_json: bool = False) -> None:
    try:
        config, config_path = load_cli_config(path)
    except StresContextError as e:
        handle_error(e)

    if as_json:
        console.print_json(data=config.budget.to_dict())
        return
    if not config_path.exists():
        console.print(f"[dim]{config_path} 不存在，显示默认配置。[/dim]")
    console.print(create_config_table(config.budget))


def _edit(path: str | None, action: str, change: Callable[[BudgetConfigEditor], None]) -> None:
    try:
        config, config_path = load_cli_config(path)
        editor = BudgetConfigEditor(config.budget)
        change(editor)
    except StresContextError as e:
        handle_error(e)
    save_cli_config(config, config_path)
    print_success(f"{action}（已写入 {config_path}）")


def set_command(
    path: str | None = None,
    context_target: int | None = None,
    cushion: int | None = None,
    reserve: int | None = None,
) -> None:
    """修改总量、安全余量和回复预留。"""
    if context_target is None and cushion is None and reserve is None:
        print_error("至少指定 --target、--cushion、--reserve 中的一项。")

    def change(editor: BudgetConfigEditor) -> None:
        if context_target is not None:
            editor.set_context_target(context_target)
        if cushion is not None:
            editor.set_cushion(cushion)
        if reserve is not None:
            editor.set_reserve(reserve)

    _edit(path, "预算总量已更新", change)


def component_command(
    name: str,
    path: str | None = None,
    enabled: bool | None = None,
    max_tokens: int | None = None,
    sticky: bool | None = None,
    top_k: int | None = None,
) -> None:
    """修改单个组件。"""
    if enabled is None and max_tokens is None and sticky is None and top_k is None:
        print_error(
            "至少指定 --enable/--disable、--max-tokens、--sticky/--no-sticky、--top-k 中的一项。"
        )

    def change(editor: BudgetConfigEditor) -> None:
        editor.set_component(
            name, enabled=enabled, max_tokens=max_tokens, sticky=sticky, top_k=top_k
        )

    _edit(path, f"组件 {name.strip().lower()} 已更新", change)


def order_command(names: list[str], path: str | None = None) -> None:
    """替换降级顺序。names 可以是多个参数，也可以是一个逗号分隔的字符串。"""
    flat = [part for name in names for part in name.split(",") if part.strip()]
    if not flat:
        print_error("请给出至少一个组件名，例如：stres-context order rag npc summaries")
    action = f"降级顺序已更新：{' > '.join(n.strip().lower() for n in flat)}"
    _edit(path, action, lambda e: e.set_degrade_order(flat))


def profile_command(name: str, path: str | None = None) -> None:
    """应用预设档位。"""
    _edit(path, f"已应用预设档位 {name}", lambda e: e.apply_profile(name))
