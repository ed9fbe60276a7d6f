"""Safe field extraction from parsed JSON responses.

Exchanges are inconsistent about how they encode numbers: the same field may
arrive as a JSON number, a numeric string, a string in scientific notation
(``"8.9e-7"``) or ``null``. The helpers here never raise on malformed input;
they return the caller-supplied default instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal(0)

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}
_FALSE_STRINGS = {"false", "0", "no", "n", "off"}


def to_decimal(value: Any, default: Decimal | None = ZERO) -> Decimal | None:
    """Convert a JSON scalar to ``Decimal``.

    Floats go through ``str`` so that ``123.45`` becomes ``Decimal("123.45")``
    rather than its binary approximation.
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            result = Decimal(text)
        except InvalidOperation:
            return default
    else:
        return default

    if not result.is_finite():
        return default
    return result


def to_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    number = to_decimal(value, None)
    if number is None:
        return default
    return int(number)


def to_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return default


def to_str(value: Any, default: str | None = None) -> str | None:
    if value is None:
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return default


def _field(node: Any, key: str) -> Any:
    if isinstance(node, Mapping):
        return node.get(key)
    return None


def get_decimal(node: Any, key: str, default: Decimal | None = ZERO) -> Decimal | None:
    return to_decimal(_field(node, key), default)


def get_int(node: Any, key: str, default: int = 0) -> int:
    return to_int(_field(node, key), default)


def get_bool(node: Any, key: str, default: bool = False) -> bool:
    return to_bool(_field(node, key), default)


def get_str(node: Any, key: str, default: str | None = None) -> str | None:
    return to_str(_field(node, key), default)


def get_path(node: Any, *keys: str | int, default: Any = None) -> Any:
    """Walk nested mappings/lists, returning ``default`` on the first miss.

    >>> get_path({"result": {"list": [{"a": 1}]}}, "result", "list", 0, "a")
    1
    """
    current = node
    for key in keys:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return default
            current = current[key]
        else:
            if not isinstance(current, Mapping) or key not in current:
                return default
            current = current[key]
    if current is None:
        return default
    return current


def as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def as_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}
