"""Sandboxed expressions for the Transform node's custom_code transformation.

Uses Python's ast module to parse and evaluate a single expression in a
restricted sandbox. Only two names are visible: ``input`` (the transform's
input value) and ``variables`` (a copy of the run's variables). There is no
attribute access on objects, no imports, no lambdas, and calls are limited to
the pure helpers in SAFE_FUNCTIONS.

Supported expressions:
- Literals: "string", 42, 3.14, true/false/null (and True/False/None)
- Arithmetic: input * 2, total / count, n % 3, a // b
- Comparisons and boolean logic: input > 10 and input < 100
- Subscripts and dict dot access: input["items"][0], variables.user.name
- Conditional expressions: "big" if input > 10 else "small"
- Helpers: upper(input), split(input, ","), len(input), json_parse(input)
"""

from __future__ import annotations

import ast
import json
import logging
import operator
from typing import Any, Callable, Dict

from .. import settings
from .template import to_json

logger = logging.getLogger(__name__)

_SAFE_COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

_SAFE_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_SAFE_UNARY_OPS = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_NAMED_CONSTANTS = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "None": None,
}


def _require_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise SandboxError(f"{name}() requires a string")
    return value


def _split(value, separator=None):
    return _require_str("split", value).split(separator)


def _join(separator, items):
    return _require_str("join", separator).join(str(item) for item in items)


SAFE_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sum": sum,
    "sorted": sorted,
    "reversed": lambda value: list(reversed(value)),
    "upper": lambda value: _require_str("upper", value).upper(),
    "lower": lambda value: _require_str("lower", value).lower(),
    "trim": lambda value: _require_str("trim", value).strip(),
    "replace": lambda value, old, new: _require_str("replace", value).replace(old, new),
    "split": _split,
    "join": _join,
    "keys": lambda value: list(value.keys()),
    "values": lambda value: list(value.values()),
    "json_parse": lambda value: json.loads(_require_str("json_parse", value)),
    "json_stringify": to_json,
}


class SandboxError(Exception):
    """Raised when a sandboxed expression is invalid or fails."""
    pass


def run_sandboxed(expression: str, input_value: Any, variables: Dict[str, Any]) -> Any:
    """Evaluate ``expression`` with ``input`` and ``variables`` in scope.

    Args:
        expression: A single Python-syntax expression
        input_value: Bound to the name ``input``
        variables: Bound to the name ``variables`` (copied, never mutated)

    Returns:
        The expression's value

    Raises:
        SandboxError: If the expression is invalid, uses unsupported
            constructs or fails while evaluating
    """
    if not expression or not expression.strip():
        raise SandboxError("Expression cannot be empty")

    expression = expression.strip()

    if len(expression) > settings.SANDBOX_MAX_EXPRESSION_LENGTH:
        raise SandboxError(
            f"Expression too long ({len(expression)} chars, "
            f"max {settings.SANDBOX_MAX_EXPRESSION_LENGTH})"
        )

    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as e:
        raise SandboxError(f"Invalid expression syntax: {e.msg}") from e

    scope = {"input": input_value, "variables": json.loads(to_json(variables))}
    try:
        return _eval_node(tree.body, scope)
    except SandboxError:
        raise
    except RecursionError as e:
        raise SandboxError("Expression nested too deeply") from e
    except Exception as e:
        raise SandboxError(f"Evaluation error: {e}") from e


def _check_size(value: Any) -> Any:
    if isinstance(value, (str, list, tuple)) and len(value) > settings.SANDBOX_MAX_SEQUENCE_LENGTH:
        raise SandboxError(
            f"Result too large ({len(value)} items, max {settings.SANDBOX_MAX_SEQUENCE_LENGTH})"
        )
    return value


def _eval_node(node: ast.AST, scope: Dict[str, Any]) -> Any:
    """Recursively evaluate an AST node."""

    if isinstance(node, ast.Constant):
        return node.value

    if isinstance(node, ast.Name):
        if node.id in scope:
            return scope[node.id]
        if node.id in _NAMED_CONSTANTS:
            return _NAMED_CONSTANTS[node.id]
        raise SandboxError(f"Unknown name: '{node.id}'")

    if isinstance(node, ast.Compare):
        left = _eval_node(node.left, scope)
        for op, comparator in zip(node.ops, node.comparators):
            op_func = _SAFE_COMPARE_OPS.get(type(op))
            if op_func is None:
                raise SandboxError(f"Unsupported comparison: {type(op).__name__}")
            right = _eval_node(comparator, scope)
            if not op_func(left, right):
                return False
            left = right
        return True

    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            result = True
            for value in node.values:
                result = _eval_node(value, scope)
                if not result:
                    return result
            return result
        result = False
        for value in node.values:
            result = _eval_node(value, scope)
            if result:
                return result
        return result

    if isinstance(node, ast.UnaryOp):
        op_func = _SAFE_UNARY_OPS.get(type(node.op))
        if op_func is None:
            raise SandboxError(f"Unsupported unary op: {type(node.op).__name__}")
        return op_func(_eval_node(node.operand, scope))

    if isinstance(node, ast.BinOp):
        op_func = _SAFE_BIN_OPS.get(type(node.op))
        if op_func is None:
            raise SandboxError(f"Unsupported binary op: {type(node.op).__name__}")
        left = _eval_node(node.left, scope)
        right = _eval_node(node.right, scope)
        if isinstance(node.op, ast.Mult):
            _check_repeat(left, right)
        return _check_size(op_func(left, right))

    if isinstance(node, ast.Subscript):
        value = _eval_node(node.value, scope)
        if isinstance(node.slice, ast.Slice):
            bounds = [
                _eval_node(part, scope) if part is not None else None
                for part in (node.slice.lower, node.slice.upper, node.slice.step)
            ]
            return value[slice(*bounds)]
        key = _eval_node(node.slice, scope)
        try:
            return value[key]
        except (KeyError, IndexError, TypeError) as e:
            raise SandboxError(f"Subscript access failed: {e}") from e

    # Attribute access: variables.user.name (only on dicts)
    if isinstance(node, ast.Attribute):
        value = _eval_node(node.value, scope)
        if isinstance(value, dict):
            if node.attr in value:
                return value[node.attr]
            raise SandboxError(f"Key '{node.attr}' not found in dict")
        raise SandboxError("Attribute access only supported on dict-like objects")

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in SAFE_FUNCTIONS:
            name = node.func.id if isinstance(node.func, ast.Name) else type(node.func).__name__
            raise SandboxError(f"Function not allowed: {name}")
        if node.keywords:
            raise SandboxError("Keyword arguments are not allowed")
        args = [_eval_node(arg, scope) for arg in node.args]
        return _check_size(SAFE_FUNCTIONS[node.func.id](*args))

    if isinstance(node, ast.List):
        return [_eval_node(elt, scope) for elt in node.elts]

    if isinstance(node, ast.Tuple):
        return [_eval_node(elt, scope) for elt in node.elts]

    if isinstance(node, ast.Dict):
        if any(k is None for k in node.keys):
            raise SandboxError("Dict unpacking is not allowed")
        return {
            _eval_node(k, scope): _eval_node(v, scope)
            for k, v in zip(node.keys, node.values)
        }

    if isinstance(node, ast.IfExp):
        if _eval_node(node.test, scope):
            return _eval_node(node.body, scope)
        return _eval_node(node.orelse, scope)

    if isinstance(node, ast.JoinedStr):
        raise SandboxError("f-strings are not allowed")

    raise SandboxError(f"Unsupported expression type: {type(node).__name__}")


def _check_repeat(left: Any, right: Any) -> None:
    for seq, count in ((left, right), (right, left)):
        if isinstance(seq, (str, list)) and isinstance(count, int):
            if len(seq) * count > settings.SANDBOX_MAX_SEQUENCE_LENGTH:
                raise SandboxError("Sequence repetition too large")
