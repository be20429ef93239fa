"""Tests for the Transform node vocabulary (promptflow/engine/transforms.py)."""

import pytest

from promptflow.engine.errors import TransformError, TypeMismatchError, UnsupportedTransformError
from promptflow.engine.transforms import apply_transform, compile_pattern, list_transforms


def _apply(name, value, **config):
    return apply_transform(name, value, config, {})


class TestRegistry:

    def test_all_transformations_registered(self):
        assert set(list_transforms()) == {
            "json_parse",
            "json_stringify",
            "to_uppercase",
            "to_lowercase",
            "trim",
            "extract_text",
            "custom_code",
        }

    def test_unknown_transformation_is_fatal(self):
        with pytest.raises(UnsupportedTransformError, match="Unsupported transformation: reverse"):
            _apply("reverse", "abc")


class TestJson:

    def test_parse(self):
        assert _apply("json_parse", '{"a": [1, 2]}') == {"a": [1, 2]}

    def test_parse_invalid(self):
        with pytest.raises(TransformError, match="Invalid JSON"):
            _apply("json_parse", "{not json")

    def test_parse_requires_string(self):
        with pytest.raises(TypeMismatchError) as exc_info:
            _apply("json_parse", {"a": 1})
        assert str(exc_info.value) == "json_parse requires string input, got object"

    def test_stringify_compact(self):
        assert _apply("json_stringify", {"a": [1, 2], "b": "ü"}) == '{"a":[1,2],"b":"ü"}'

    def test_stringify_scalar(self):
        assert _apply("json_stringify", "x") == '"x"'


class TestStringTransforms:

    def test_case(self):
        assert _apply("to_uppercase", "Hello") == "HELLO"
        assert _apply("to_lowercase", "Hello") == "hello"

    def test_trim(self):
        assert _apply("trim", "  padded\t\n") == "padded"

    @pytest.mark.parametrize("name", ["to_uppercase", "to_lowercase", "trim"])
    def test_type_mismatch(self, name):
        with pytest.raises(TypeMismatchError, match="got number"):
            _apply(name, 5)

    def test_type_mismatch_is_non_fatal_error(self):
        assert issubclass(TypeMismatchError, TransformError)


class TestExtractText:

    def test_first_group(self):
        assert _apply("extract_text", "order #42 shipped", regex=r"#(\d+)") == "42"

    def test_delimited_pattern_with_flags(self):
        assert _apply("extract_text", "ID: abc", regex=r"/id: (\w+)/i") == "abc"

    def test_no_match_returns_empty(self):
        assert _apply("extract_text", "nothing here", regex=r"#(\d+)") == ""

    def test_pattern_without_group_returns_empty(self):
        assert _apply("extract_text", "abc", regex="abc") == ""

    def test_missing_regex(self):
        with pytest.raises(TransformError, match="regex"):
            _apply("extract_text", "abc")

    def test_invalid_regex(self):
        with pytest.raises(TransformError, match="Invalid regular expression"):
            _apply("extract_text", "abc", regex="(unclosed")


class TestCustomCode:

    def test_expression(self):
        assert apply_transform("custom_code", 4, {"code": "input * variables.factor"}, {"factor": 3}) == 12

    def test_missing_code(self):
        with pytest.raises(TransformError, match="requires 'code'"):
            _apply("custom_code", 1)

    def test_sandbox_violation_is_transform_error(self):
        with pytest.raises(TransformError, match="custom_code failed"):
            _apply("custom_code", 1, code="__import__('os')")


def test_compile_pattern_plain_slash_kept():
    # An unterminated delimiter is treated as a bare pattern
    assert compile_pattern("/abc").pattern == "/abc"
