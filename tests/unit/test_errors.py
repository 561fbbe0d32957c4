"""
结构化异常测试。
"""

from __future__ import annotations

import pytest

from stres_context.errors import (
    ConfigLoadError,
    ConfigValidationError,
    ProducerError,
    PublishError,
    StresContextError,
    TokenizerError,
    UnknownComponentError,
    UnknownProfileError,
)


class TestStresContextError:
    """三段式异常基类。"""

    def test_full_message(self) -> None:
        """测试 What / Why / How 拼接为完整消息。"""
        error = StresContextError(what="A 失败。", why="B 不可用。", how="重启 B。")
        assert error.full_message == "A 失败。\n→ 原因：B 不可用。\n→ 修复建议：重启 B。"
        assert str(error) == error.full_message

    def test_what_only(self) -> None:
        error = StresContextError(what="出错了。")
        assert str(error) == "出错了。"
        assert error.to_dict() == {"error_type": "StresContextError", "what": "出错了。"}

    def test_to_dict_includes_details(self) -> None:
        error = ProducerError(what="组件 'primer' 预测失败。", why="timeout", component="primer")
        data = error.to_dict()
        assert data["error_type"] == "ProducerError"
        assert data["why"] == "timeout"
        assert data["details"] == {"component": "primer"}

    @pytest.mark.parametrize(
        "error_cls",
        [
            ConfigLoadError,
            ConfigValidationError,
            ProducerError,
            PublishError,
            TokenizerError,
            UnknownComponentError,
            UnknownProfileError,
        ],
    )
    def test_subclasses_share_base(self, error_cls: type[StresContextError]) -> None:
        """测试所有异常都可以用基类统一捕获。"""
        with pytest.raises(StresContextError):
            raise error_cls(what="x")


class TestSpecificErrors:
    """各子类的额外属性。"""

    def test_unknown_component(self) -> None:
        error = UnknownComponentError(what="未知组件。", component="lore", available=["guard", "rag"])
        assert error.component == "lore"
        assert error.details["available"] == ["guard", "rag"]

    def test_unknown_profile(self) -> None:
        assert UnknownProfileError(what="x", profile="Huge").profile == "Huge"

    def test_publish_error_extra_details(self) -> None:
        error = PublishError(what="x", slot_key="STRES_RAG", component="rag")
        assert error.slot_key == "STRES_RAG"
        assert error.details == {"slot_key": "STRES_RAG", "component": "rag"}

    def test_config_errors(self) -> None:
        validation = ConfigValidationError(what="x", config_path="a.yaml", field_path="budget.cushion")
        assert validation.details == {"config_path": "a.yaml", "field_path": "budget.cushion"}
        assert ConfigLoadError(what="x", file_path="a.yaml").file_path == "a.yaml"
