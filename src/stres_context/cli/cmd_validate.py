"""validate 命令 — 校验 YAML 配置文件。"""

from __future__ import annotations

import sys
from pathlib import Path

from rich.panel import Panel

from stres_context.cli.utils import create_console, print_error, print_success, print_warning
from stres_context.config.loader import load_config, validate_config_file

console = create_console()


def validate_command(path: str, strict: bool = False) -> None:
    """
    校验配置文件。

    除了 Schema 错误，还会给出两类警告：常驻组件的上限总和超出 limit，
    以及启用的可选组件没有出现在降级顺序中（它们永远拿不到配额）。
    --strict 时警告视为错误。
    """
    if not Path(path).exists():
        print_error(f"文件不存在：{path}")

    console.print(f"[bold]校验配置文件：[/bold] {path}\n")
    errors = validate_config_file(path)
    if errors:
        console.print(Panel(
            "\n\n".join(errors),
            title=f"[bold red]校验失败（{len(errors)} 个错误）[/bold red]",
            border_style="red",
        ))
        sys.exit(1)

    warnings = collect_warnings(path)
    for warning in warnings:
        print_warning(warning)
    if warnings and strict:
        console.print("\n[bold red]严格模式下警告视为错误。[/bold red]")
        sys.exit(1)

    print_success(f"{path} 校验通过")


def collect_warnings(path: str) -> list[str]:
    budget = load_config(path).budget
    warnings: list[str] = []

    sticky_caps = sum(c.max_tokens for c in budget.components.values() if c.enabled and c.sticky)
    if sticky_caps > budget.limit:
        warnings.append(
            f"常驻组件上限合计 {sticky_caps} tokens，超出可分配上限 {budget.limit} tokens。"
        )

    unordered = [
        name
        for name, c in budget.components.items()
        if c.enabled and not c.sticky and name not in budget.degrade_order
    ]
    if unordered:
        warnings.append(f"以下可选组件不在降级顺序中，将始终得到 0：{', '.join(unordered)}。")
    return warnings
