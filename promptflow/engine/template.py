"""Template resolution for {{ path.to.value }} placeholders.

Substitution policy, shared by every caller (node executors, condition
substitution):

- ``None`` becomes the empty string.
- Booleans become ``true`` / ``false``.
- Numbers use ``str()`` (no locale formatting, floats keep their repr).
- Maps and lists become compact JSON (``{"a":1}``), keys in insertion order,
  non-ASCII characters kept as-is.
- Strings are substituted verbatim.

A placeholder whose path cannot be resolved is left in the text unchanged.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Tuple
from urllib.parse import quote_plus

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")

_MISSING = object()


def stringify(value: Any) -> str:
    """Convert a resolved variable value to its substitution text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return to_json(value)
    return str(value)


def to_json(value: Any) -> str:
    """Canonical compact JSON used for composite substitutions."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def lookup(context: Mapping[str, Any], path: str) -> Tuple[bool, Any]:
    """Walk a dotted path into nested maps (and lists, by integer segment).

    Returns:
        (found, value). ``found`` is False when any segment is missing.
    """
    current: Any = context
    for segment in path.strip().split("."):
        segment = segment.strip()
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        elif isinstance(current, (list, tuple)) and segment.lstrip("-").isdigit():
            index = int(segment)
            current = current[index] if -len(current) <= index < len(current) else _MISSING
        else:
            return False, None
        if current is _MISSING:
            return False, None
    return True, current


def get_variable(variables: Mapping[str, Any], name: str) -> Tuple[bool, Any]:
    """Read a variable by exact name, falling back to a dotted path."""
    if name in variables:
        return True, variables[name]
    return lookup(variables, name)


def resolve(text: str, context: Mapping[str, Any], url_encode: bool = False) -> str:
    """Replace every resolvable placeholder in ``text``.

    Args:
        text: Template text
        context: Variable context
        url_encode: Percent-encode substituted values (query-string style)

    Returns:
        The text with placeholders substituted. Non-string input is returned
        unchanged.
    """
    if not isinstance(text, str) or "{{" not in text:
        return text

    def _replace(match: re.Match) -> str:
        found, value = lookup(context, match.group(1))
        if not found:
            return match.group(0)
        rendered = stringify(value)
        return quote_plus(rendered) if url_encode else rendered

    return PLACEHOLDER_PATTERN.sub(_replace, text)


def resolve_structure(value: Any, context: Mapping[str, Any]) -> Any:
    """Resolve placeholders in every string leaf of a nested map/list."""
    if isinstance(value, str):
        return resolve(value, context)
    if isinstance(value, Mapping):
        return {key: resolve_structure(item, context) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve_structure(item, context) for item in value]
    return value


def find_placeholders(text: str) -> list[str]:
    """Return the trimmed paths of all placeholders in ``text``."""
    if not isinstance(text, str):
        return []
    return [m.group(1).strip() for m in PLACEHOLDER_PATTERN.finditer(text)]
