"""
STRES Context CLI — 命令行工具入口。

用法::

    stres-context --help
    stres-context init
    stres-context show
    stres-context set --target 3000 --cushion 250
    stres-context component rag --enable --max-tokens 250
    stres-context order rag npc summaries primer hud header combat
    stres-context profile Lean
    stres-context validate stres_context.yaml
    stres-context simulate predictions.yaml --profile Rich
"""

from __future__ import annotations


import typer

from stres_context.cli.utils import create_console

app = typer.Typer(
    name="stres-context",
    help="STRES Context — 叙事上下文预算分配 CLI",
    add_completion=False,
    no_args_is_help=True,
)

console = create_console()

_CONFIG_OPTION_HELP = "配置文件路径（默认自动搜索 stres_context.yaml）"


@app.command(name="init")
def init(
    path: str | None = typer.Option(None, "--config", "-c", help="输出路径（默认 stres_context.yaml）"),
    force: bool = typer.Option(False, "--force", "-f", help="强制覆盖已存在的文件"),
) -> None:
    """在当前目录生成默认配置文件。"""
    from stres_context.cli.cmd_config import init_command
    init_command(path=path, force=force)


@app.command(name="show")
def show(
    path: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
    as_json: bool = typer.Option(False, "--json", help="以 JSON 输出（camelCase 键）"),
) -> None:
    """显示当前预算配置。"""
    from stres_context.cli.cmd_config import show_command
    show_command(path=path, as_json=as_json)


@app.command(name="set")
def set_(
    context_target: int | None = typer.Option(None, "--target", "-t", help="总软上限（Token）"),
    cushion: int | None = typer.Option(None, "--cushion", help="安全余量（Token）"),
    reserve: int | None = typer.Option(None, "--reserve", help="回复预留（Token）"),
    path: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
) -> None:
    """修改总量、安全余量和回复预留。"""
    from stres_context.cli.cmd_config import set_command
    set_command(path=path, context_target=context_target, cushion=cushion, reserve=reserve)


@app.command(name="component")
def component(
    name: str = typer.Argument(..., help="组件名（guard / header / primer / summaries / rag / npc / hud / combat）"),
    enabled: bool | None = typer.Option(None, "--enable/--disable", help="启用或禁用"),
    max_tokens: int | None = typer.Option(None, "--max-tokens", "-m", help="Token 上限"),
    sticky: bool | None = typer.Option(None, "--sticky/--no-sticky", help="是否常驻"),
    top_k: int | None = typer.Option(None, "--top-k", help="检索命中数（仅 rag）"),
    path: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
) -> None:
    """修改单个组件的开关、上限和常驻标记。"""
    from stres_context.cli.cmd_config import component_command
    component_command(
        name=name,
        path=path,
        enabled=enabled,
        max_tokens=max_tokens,
        sticky=sticky,
        top_k=top_k,
    )


@app.command(name="order")
def order(
    names: list[str] = typer.Argument(..., help="组件名，最低优先级在前（也可用逗号分隔）"),
    path: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
) -> None:
    """替换降级顺序。"""
    from stres_context.cli.cmd_config import order_command
    order_command(names=names, path=path)


@app.command(name="profile")
def profile(
    name: str = typer.Argument(..., help="预设档位：Lean / Balanced / Rich"),
    path: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
) -> None:
    """应用预设档位（只改变总量和各组件上限）。"""
    from stres_context.cli.cmd_config import profile_command
    profile_command(name=name, path=path)


@app.command(name="validate")
def validate(
    path: str = typer.Argument("stres_context.yaml", help="YAML 配置文件路径"),
    strict: bool = typer.Option(False, "--strict", help="严格模式：将警告视为错误"),
) -> None:
    """校验 YAML 配置文件。"""
    from stres_context.cli.cmd_validate import validate_command
    validate_command(path=path, strict=strict)


@app.command(name="simulate")
def simulate(
    input_file: str = typer.Argument(..., help="预测文件（JSON 或 YAML）"),
    path: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
    profile: str | None = typer.Option(None, "--profile", "-p", help="临时套用预设档位（不写回文件）"),
    show_text: bool = typer.Option(False, "--show-text", help="显示按配额裁剪后的文本"),
) -> None:
    """对一组预测运行分配器，输出分配表。"""
    from stres_context.cli.cmd_simulate import simulate_command
    simulate_command(input_file=input_file, path=path, profile=profile, show_text=show_text)


@app.command(name="version")
def version() -> None:
    """显示版本信息。"""
    from stres_context import __version__
    console.print(f"STRES Context v{__version__}")


def main() -> None:
    """CLI 入口点。"""
    app()


if __name__ == "__main__":
    main()
