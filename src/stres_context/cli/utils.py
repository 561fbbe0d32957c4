"""
CLI 工具函数 — Rich 输出、文件加载、配置读写。
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, NoReturn

import yaml
from rich.console import Console
from rich.table import Table

from stres_context.config.loader import dump_config, find_config_file, load_config
from stres_context.config.schema import BudgetConfig, StresConfig
from stres_context.errors import StresContextError
from stres_context.models.prediction import AllocationDecision

DEFAULT_CONFIG_FILE = "stres_context.yaml"

_console: Console | None = None


def create_console() -> Console:
    """创建或获取全局 Rich Console 实例。"""
    global _console
    if _console is None:
        _console = Console()
    return _console


def print_error(message: str, exit_code: int = 1) -> NoReturn:
    console = create_console()
    console.print(f"[bold red]X 错误：[/bold red]{message}")
    sys.exit(exit_code)


def print_success(message: str) -> None:
    create_console().print(f"[bold green]OK[/bold green] {message}")


def print_warning(message: str) -> None:
    create_console().print(f"[bold yellow]![/bold yellow] {message}")


def handle_error(error: StresContextError) -> NoReturn:
    """三段式错误信息输出后退出。"""
    console = create_console()
    console.print("\n[bold red]X 错误[/bold red]\n")
    console.print(error.full_message, markup=False)
    sys.exit(1)


def resolve_config_path(path: str | None) -> Path:
    """显式路径优先；否则取搜索到的配置文件；都没有时为当前目录的 stres_context.yaml。"""
    if path:
        return Path(path)
    return find_config_file() or Path(DEFAULT_CONFIG_FILE)


def load_cli_config(path: str | None) -> tuple[StresConfig, Path]:
    """
    加载配置；文件不存在时返回默认配置（保存时会新建文件）。

    异常:
        StresContextError: 文件存在但无效
    """
    config_path = resolve_config_path(path)
    if config_path.exists():
        return load_config(config_path), config_path
    return StresConfig(), config_path


def save_cli_config(config: StresConfig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_config(config), encoding="utf-8")


def load_json_or_yaml(file_path: str | Path) -> Any:
    """
    按扩展名加载 JSON 或 YAML；其他扩展名先试 JSON 再试 YAML。

    异常:
        FileNotFoundError: 文件不存在
        ValueError: 格式无效
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"文件不存在：{path}")

    content = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            return json.loads(content)
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(content)
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            return yaml.safe_load(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"JSON 格式错误：{e}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"YAML 格式错误：{e}") from e


def format_token_count(count: int) -> str:
    return f"{count:,}"


def create_config_table(budget: BudgetConfig) -> Table:
    """预算配置表：每个组件一行，按降级顺序标出优先级。"""
    table = Table(
        title=(
            f"预算配置（{budget.profile}）  target={budget.context_target} "
            f"cushion={budget.cushion} reserve={budget.reserve} limit={budget.limit}"
        ),
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("组件", style="cyan")
    table.add_column("启用", justify="center")
    table.add_column("常驻", justify="center")
    table.add_column("上限", justify="right", style="blue")
    table.add_column("降级序号", justify="right", style="yellow")

    order = {name: index + 1 for index, name in enumerate(budget.degrade_order)}
    for name, component in budget.components.items():
        table.add_row(
            name,
            "Y" if component.enabled else "-",
            "Y" if component.sticky else "-",
            format_token_count(component.max_tokens),
            str(order.get(name, "-")),
        )
    return table


def create_decision_table(decision: AllocationDecision, costs: dict[str, int]) -> Table:
    """分配结果表：预测成本、配额和状态。"""
    table = Table(title="预算分配", show_header=True, header_style="bold cyan")
    table.add_column("组件", style="cyan")
    table.add_column("预测", justify="right")
    table.add_column("配额", justify="right", style="blue")
    table.add_column("状态")

    for name, allowance in decision.allowance.items():
        cost = costs.get(name, 0)
        if name == decision.partial:
            status = "[yellow]部分[/yellow]"
        elif allowance > 0:
            status = "[green]全额[/green]"
        elif cost > 0:
            status = "[red]丢弃[/red]"
        else:
            status = "[dim]-[/dim]"
        table.add_row(name, format_token_count(cost), format_token_count(allowance), status)

    table.add_section()
    table.add_row("limit", "", format_token_count(decision.limit), "")
    table.add_row("total", "", format_token_count(decision.total_allocated), "")
    table.add_row("remaining", "", format_token_count(decision.remaining), "")
    return table
