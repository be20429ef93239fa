"""Restricted boolean expression evaluator for Condition nodes.

Placeholders are first replaced by quoted string literals of the variable
values (``{{x}}`` with x=3 becomes ``'3'``), then the expression is parsed by
a small recursive-descent parser. Nothing is ever handed to the Python
interpreter.

Grammar (lowest precedence first):

    or         := and (("||" | "or") and)*
    and        := equality (("&&" | "and") equality)*
    equality   := relational (("==" | "!=" | "<>" | "===" | "!==") relational)?
    relational := unary (("<" | "<=" | ">" | ">=") unary)?
    unary      := ("!" | "-") unary | primary
    primary    := STRING | NUMBER | true | false | null | "(" or ")"

Loose comparisons follow the usual scripting rules: two numeric operands
(including numeric strings such as ``'10'``) compare as numbers, anything else
compares as strings. ``===`` / ``!==`` additionally require the same type.
"""

from __future__ import annotations

import re
from typing import Any, List, Mapping, NamedTuple, Optional

from .. import settings
from .errors import EvaluationError
from .template import PLACEHOLDER_PATTERN, lookup, stringify

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<WS>\s+)
    |(?P<STRING>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
    |(?P<NUMBER>(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<OP>===|!==|==|!=|<>|<=|>=|&&|\|\||[<>!()\-])
    |(?P<IDENT>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE | re.DOTALL,
)

_NUMERIC_STRING = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*$")

_EQUALITY_OPS = {"==", "!=", "<>", "===", "!=="}
_RELATIONAL_OPS = {"<", "<=", ">", ">="}
_KEYWORD_LITERALS = {"true": True, "false": False, "null": None}


class Token(NamedTuple):
    kind: str
    value: Any
    position: int


def quote_literal(value: str) -> str:
    """Single-quote a string, escaping backslashes and quotes."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace('"', '\\"')
    return f"'{escaped}'"


def substitute(expression: str, context: Mapping[str, Any]) -> str:
    """Replace placeholders with quoted string literals of their values.

    Raises:
        EvaluationError: If a placeholder cannot be resolved
    """

    def _replace(match: re.Match) -> str:
        found, value = lookup(context, match.group(1))
        if not found:
            raise EvaluationError(
                f"Unresolved variable in condition: {match.group(0)}"
            )
        return quote_literal(stringify(value))

    return PLACEHOLDER_PATTERN.sub(_replace, expression)


def evaluate(expression: str, context: Mapping[str, Any]) -> bool:
    """Substitute variables into ``expression`` and evaluate it to a bool.

    Raises:
        EvaluationError: On empty, malformed or unsupported expressions
    """
    if not isinstance(expression, str) or not expression.strip():
        raise EvaluationError("Condition expression cannot be empty")
    if len(expression) > settings.CONDITION_MAX_LENGTH:
        raise EvaluationError(
            f"Condition too long ({len(expression)} chars, "
            f"max {settings.CONDITION_MAX_LENGTH})"
        )
    return truthy(_Parser(tokenize(substitute(expression, context))).parse())


def validate_condition(expression: str) -> List[str]:
    """Check an expression's syntax without variable values.

    Returns:
        List of error strings. Empty if valid.
    """
    if not isinstance(expression, str) or not expression.strip():
        return ["Condition expression cannot be empty"]
    if len(expression) > settings.CONDITION_MAX_LENGTH:
        return [f"Condition too long ({len(expression)} chars)"]
    try:
        _Parser(tokenize(PLACEHOLDER_PATTERN.sub("''", expression))).parse()
    except EvaluationError as e:
        return [str(e)]
    return []


def tokenize(expression: str) -> List[Token]:
    tokens: List[Token] = []
    position = 0
    while position < len(expression):
        match = _TOKEN_PATTERN.match(expression, position)
        if match is None:
            if expression.startswith("{{", position):
                raise EvaluationError(
                    f"Unresolved placeholder at position {position}"
                )
            raise EvaluationError(
                f"Unexpected character {expression[position]!r} at position {position}"
            )
        kind = match.lastgroup
        text = match.group(kind)
        if kind == "STRING":
            tokens.append(Token("LITERAL", _unescape(text[1:-1]), position))
        elif kind == "NUMBER":
            number = float(text) if any(c in text for c in ".eE") else int(text)
            tokens.append(Token("LITERAL", number, position))
        elif kind == "IDENT":
            word = text.lower()
            if word in _KEYWORD_LITERALS:
                tokens.append(Token("LITERAL", _KEYWORD_LITERALS[word], position))
            elif word == "and":
                tokens.append(Token("OP", "&&", position))
            elif word == "or":
                tokens.append(Token("OP", "||", position))
            else:
                raise EvaluationError(f"Unknown identifier '{text}' at position {position}")
        elif kind == "OP":
            tokens.append(Token("OP", "!=" if text == "<>" else text, position))
        position = match.end()
    return tokens


def _unescape(body: str) -> str:
    return re.sub(
        r"\\(.)",
        lambda m: "\0" if m.group(1) == "0" else m.group(1),
        body,
        flags=re.DOTALL,
    )


class _Parser:
    """Evaluates while parsing; operands never have side effects."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def parse(self) -> Any:
        if not self.tokens:
            raise EvaluationError("Condition expression cannot be empty")
        value = self._or()
        if self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            raise EvaluationError(
                f"Unexpected token {token.value!r} at position {token.position}"
            )
        return value

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _accept(self, *ops: str) -> Optional[str]:
        token = self._peek()
        if token is not None and token.kind == "OP" and token.value in ops:
            self.pos += 1
            return token.value
        return None

    def _or(self) -> Any:
        left = self._and()
        while self._accept("||"):
            right = self._and()
            left = truthy(left) or truthy(right)
        return left

    def _and(self) -> Any:
        left = self._equality()
        while self._accept("&&"):
            right = self._equality()
            left = truthy(left) and truthy(right)
        return left

    def _equality(self) -> Any:
        left = self._relational()
        op = self._accept(*_EQUALITY_OPS)
        if op is None:
            return left
        right = self._relational()
        if self._accept(*_EQUALITY_OPS):
            raise EvaluationError("Chained equality comparisons are not allowed")
        if op == "===":
            return strict_equals(left, right)
        if op == "!==":
            return not strict_equals(left, right)
        result = loose_compare(left, right) == 0
        return result if op == "==" else not result

    def _relational(self) -> Any:
        left = self._unary()
        op = self._accept(*_RELATIONAL_OPS)
        if op is None:
            return left
        right = self._unary()
        if self._accept(*_RELATIONAL_OPS):
            raise EvaluationError("Chained comparisons are not allowed")
        order = loose_compare(left, right)
        return {
            "<": order < 0,
            "<=": order <= 0,
            ">": order > 0,
            ">=": order >= 0,
        }[op]

    def _unary(self) -> Any:
        self.depth += 1
        if self.depth > settings.CONDITION_MAX_DEPTH:
            raise EvaluationError("Condition nested too deeply")
        try:
            if self._accept("!"):
                return not truthy(self._unary())
            if self._accept("-"):
                operand = self._unary()
                number = to_number(operand)
                if number is None:
                    raise EvaluationError("Unary minus requires a numeric operand")
                return -number
            return self._primary()
        finally:
            self.depth -= 1

    def _primary(self) -> Any:
        token = self._peek()
        if token is None:
            raise EvaluationError("Unexpected end of condition")
        if token.kind == "LITERAL":
            self.pos += 1
            return token.value
        if self._accept("("):
            value = self._or()
            if not self._accept(")"):
                raise EvaluationError("Missing closing parenthesis")
            return value
        raise EvaluationError(
            f"Unexpected token {token.value!r} at position {token.position}"
        )


# =====================================================================
# Value semantics
# =====================================================================

def truthy(value: Any) -> bool:
    """Scripting-style truthiness: "", "0", 0, 0.0 and null are false."""
    if isinstance(value, str):
        return value not in ("", "0")
    return bool(value)


def to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and _NUMERIC_STRING.match(value):
        return float(value)
    return None


def strict_equals(left: Any, right: Any) -> bool:
    return type(left) is type(right) and left == right


def loose_compare(left: Any, right: Any) -> int:
    """Three-way loose comparison returning -1, 0 or 1."""
    if isinstance(left, bool) or isinstance(right, bool):
        return _sign(int(truthy(left)) - int(truthy(right)))
    if left is None and right is None:
        return 0
    if left is None or right is None:
        other = right if left is None else left
        if isinstance(other, str):
            a, b = ("", other) if left is None else (other, "")
            return _sign((a > b) - (a < b))
        return _sign(int(truthy(left)) - int(truthy(right)))

    left_number, right_number = to_number(left), to_number(right)
    if left_number is not None and right_number is not None:
        return _sign((left_number > right_number) - (left_number < right_number))

    a, b = stringify(left), stringify(right)
    return _sign((a > b) - (a < b))


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)
