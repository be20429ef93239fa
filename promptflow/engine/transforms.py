"""Transformation vocabulary for Transform nodes.

Each transformation is a plain function ``(value, config, variables) -> value``
registered under its name. Unknown names raise UnsupportedTransformError
(fatal); bad input raises TransformError / TypeMismatchError (recorded on the
node result).
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List

from .errors import TransformError, TypeMismatchError, UnsupportedTransformError
from .sandbox import SandboxError, run_sandboxed
from .template import to_json

TransformFunc = Callable[[Any, Dict[str, Any], Dict[str, Any]], Any]

TRANSFORMS: Dict[str, TransformFunc] = {}

# Characters accepted as delimiters in /pattern/flags form
_DELIMITERS = "/#~@!%|+;,"

_PATTERN_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": 0,
}

# Whitespace stripped by trim, NUL included
_TRIM_CHARS = " \t\n\r\0\x0b"


def register_transform(name: str) -> Callable[[TransformFunc], TransformFunc]:
    def decorator(func: TransformFunc) -> TransformFunc:
        TRANSFORMS[name] = func
        return func
    return decorator


def apply_transform(name: str, value: Any, config: Dict[str, Any], variables: Dict[str, Any]) -> Any:
    """Apply transformation ``name`` to ``value``.

    Raises:
        UnsupportedTransformError: If ``name`` is not registered
        TransformError: If the input cannot be transformed
    """
    func = TRANSFORMS.get(name)
    if func is None:
        raise UnsupportedTransformError(name)
    return func(value, config, variables)


def list_transforms() -> List[str]:
    return sorted(TRANSFORMS)


def _require_string(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise TypeMismatchError(name, "string", value)
    return value


@register_transform("json_parse")
def json_parse(value, config, variables):
    text = _require_string("json_parse", value)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise TransformError(f"Invalid JSON: {e.msg} at position {e.pos}") from e


@register_transform("json_stringify")
def json_stringify(value, config, variables):
    try:
        return to_json(value)
    except (TypeError, ValueError) as e:
        raise TransformError(f"Value is not JSON serializable: {e}") from e


@register_transform("to_uppercase")
def to_uppercase(value, config, variables):
    return _require_string("to_uppercase", value).upper()


@register_transform("to_lowercase")
def to_lowercase(value, config, variables):
    return _require_string("to_lowercase", value).lower()


@register_transform("trim")
def trim(value, config, variables):
    return _require_string("trim", value).strip(_TRIM_CHARS)


@register_transform("extract_text")
def extract_text(value, config, variables):
    """First capture group of ``config["regex"]``, or "" when nothing matches."""
    text = _require_string("extract_text", value)
    raw_pattern = config.get("regex")
    if not raw_pattern:
        raise TransformError("extract_text requires a 'regex'")

    match = compile_pattern(str(raw_pattern)).search(text)
    if match is None or match.re.groups < 1 or match.group(1) is None:
        return ""
    return match.group(1)


@register_transform("custom_code")
def custom_code(value, config, variables):
    code = config.get("code")
    if not code:
        raise TransformError("custom_code requires 'code'")
    try:
        return run_sandboxed(str(code), value, variables)
    except SandboxError as e:
        raise TransformError(f"custom_code failed: {e}") from e


def compile_pattern(raw: str) -> re.Pattern:
    """Compile a bare pattern or a delimited ``/pattern/flags`` one."""
    pattern, flags = raw, 0
    if len(raw) >= 2 and raw[0] in _DELIMITERS:
        end = raw.rfind(raw[0])
        modifiers = raw[end + 1:]
        if end > 0 and all(m in _PATTERN_FLAGS for m in modifiers):
            pattern = raw[1:end]
            for modifier in modifiers:
                flags |= _PATTERN_FLAGS[modifier]
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise TransformError(f"Invalid regular expression: {e}") from e
