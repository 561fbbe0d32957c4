"""
simulate 命令 — 对一组预测运行分配器并展示结果。

输入文件（JSON 或 YAML）::

    predictions:
      guard: 40
      header: 30
      primer: {tokens: 900, text: "World: Eldoria ..."}
      rag: 120

也接受 ``[{name: primer, tokens: 900}, ...]`` 列表形式，或省略 predictions 外层。
"""

from __future__ import annotations

from typing import Any

from stres_context.budget.allocator import BudgetAllocator
from stres_context.cli.utils import (
    create_console,
    create_decision_table,
    handle_error,
    load_cli_config,
    load_json_or_yaml,
    print_error,
)
from stres_context.config.editor import BudgetConfigEditor
from stres_context.errors import StresContextError
from stres_context.models.prediction import ComponentPrediction
from stres_context.tokenizer.estimator import estimate_heuristic
from stres_context.trimmer import trim_to_tokens

console = create_console()


def parse_predictions(data: Any) -> list[ComponentPrediction]:
    """
    把输入文件解析为预测列表。

    只有文本没有 tokens 的条目用字符启发式估算。

    异常:
        ValueError: 结构无法识别
    """
    if isinstance(data, dict) and "predictions" in data:
        data = data["predictions"]

    if isinstance(data, dict):
        entries = [(name, value) for name, value in data.items()]
    elif isinstance(data, list):
        entries = []
        for item in data:
            if not isinstance(item, dict) or "name" not in item:
                raise ValueError(f"预测列表的每一项都需要 name 字段：{item!r}")
            entries.append((item["name"], item))
    else:
        raise ValueError("预测文件必须是 组件名 → tokens 的映射或预测列表。")

    predictions: list[ComponentPrediction] = []
    for name, value in entries:
        if isinstance(value, dict):
            text = str(value.get("text") or "")
            tokens = value.get("tokens")
            if tokens is None:
                tokens = estimate_heuristic(text)
        else:
            text = ""
            tokens = value
        if isinstance(tokens, bool) or not isinstance(tokens, (int, float)):
            raise ValueError(f"组件 '{name}' 的 tokens 必须是数字，实际为 {tokens!r}。")
        predictions.append(ComponentPrediction(name=str(name), tokens=int(tokens), text=text))
    return predictions


def simulate_command(
    input_file: str,
    path: str | None = None,
    profile: str | None = None,
    show_text: bool = False,
) -> None:
    try:
        data = load_json_or_yaml(input_file)
        predictions = parse_predictions(data)
    except (FileNotFoundError, ValueError) as e:
        print_error(str(e))

    try:
        config, _ = load_cli_config(path)
        if profile:
            BudgetConfigEditor(config.budget).apply_profile(profile)
    except StresContextError as e:
        handle_error(e)

    allocator = BudgetAllocator()
    decision = allocator.allocate(config.budget, predictions)
    costs = allocator.clamp_costs(config.budget, predictions)
    console.print(create_decision_table(decision, costs))

    if decision.overcommitted:
        console.print(
            f"[yellow]常驻组件共 {decision.sticky_total} tokens，超出上限 {decision.limit}。[/yellow]"
        )

    if show_text:
        for prediction in predictions:
            allowance = decision.allowance_for(prediction.name.strip().lower())
            if not prediction.text:
                continue
            trimmed = trim_to_tokens(prediction.text, allowance)
            console.rule(f"{prediction.name}（{allowance} tokens）")
            if trimmed:
                console.print(trimmed, markup=False)
            else:
                console.print("[dim](空)[/dim]")
