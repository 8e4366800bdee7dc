"""
Culture-invariant conversion between filter text and typed values.

These are pure-Python helpers with no infrastructure dependencies.
Parsing never depends on locale: decimals use ``.``, booleans are the
literals ``true``/``false``, temporal values are ISO 8601.
"""

from __future__ import annotations

import datetime
import decimal
import enum
import math
import types
import typing
import uuid as uuid_module
from typing import Any, Union

_NONE_TYPE = type(None)

# ---------------------------------------------------------------------------
# Type helpers
# ---------------------------------------------------------------------------


def unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """
    Split ``Optional[X]`` / ``X | None`` into ``(X, True)``.

    Any other annotation is returned as ``(annotation, False)``.  Unions of
    several non-None members are left untouched.
    """
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not _NONE_TYPE]
        nullable = len(args) != len(typing.get_args(annotation))
        if len(args) == 1:
            return args[0], nullable
        return annotation, nullable
    return annotation, annotation is _NONE_TYPE


def is_text_type(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, str) and not issubclass(
        tp, enum.Enum
    )


# ---------------------------------------------------------------------------
# Text → value
# ---------------------------------------------------------------------------

_TRUE_LITERALS = frozenset({"true"})
_FALSE_LITERALS = frozenset({"false"})


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in _TRUE_LITERALS:
        return True
    if lowered in _FALSE_LITERALS:
        return False
    raise ValueError(f"not a boolean literal: {text!r}")


def _iso(text: str) -> str:
    text = text.strip()
    # ``fromisoformat`` before 3.11 rejects the UTC designator.
    if text.endswith(("Z", "z")):
        return text[:-1] + "+00:00"
    return text


def _parse_datetime(text: str) -> datetime.datetime:
    return datetime.datetime.fromisoformat(_iso(text))


def _parse_date(text: str) -> datetime.date:
    return datetime.date.fromisoformat(text.strip())


def _parse_time(text: str) -> datetime.time:
    return datetime.time.fromisoformat(_iso(text))


def _parse_int(text: str) -> int:
    stripped = text.strip()
    if not stripped.lstrip("+-").isdigit():
        raise ValueError(f"not an integer: {text!r}")
    return int(stripped)


def _parse_float(text: str) -> float:
    value = float(text.strip())
    if not math.isfinite(value):
        raise ValueError(f"not a finite number: {text!r}")
    return value


def _parse_decimal(text: str) -> decimal.Decimal:
    try:
        value = decimal.Decimal(text.strip())
    except decimal.InvalidOperation as exc:
        raise ValueError(f"not a decimal: {text!r}") from exc
    if not value.is_finite():
        raise ValueError(f"not a finite number: {text!r}")
    return value


def _parse_uuid(text: str) -> uuid_module.UUID:
    return uuid_module.UUID(text.strip())


def _parse_enum(text: str, enum_type: type[enum.Enum]) -> enum.Enum:
    stripped = text.strip()
    for member in enum_type:
        if member.name.lower() == stripped.lower():
            return member
    for member in enum_type:
        if str(member.value) == stripped:
            return member
    raise ValueError(f"{stripped!r} is not a member of {enum_type.__name__}")


# Order matters: bool before int, datetime before date.
_PARSERS: tuple[tuple[type[Any], Any], ...] = (
    (bool, _parse_bool),
    (int, _parse_int),
    (float, _parse_float),
    (decimal.Decimal, _parse_decimal),
    (datetime.datetime, _parse_datetime),
    (datetime.date, _parse_date),
    (datetime.time, _parse_time),
    (uuid_module.UUID, _parse_uuid),
)


def coerce_text(text: str, target: Any) -> Any:
    """
    Convert *text* to an instance of *target*.

    Raises:
        ValueError: When the text cannot be parsed or *target* has no
            conversion rule.
    """
    target, _ = unwrap_optional(target)
    if not isinstance(target, type):
        raise ValueError(f"no conversion rule for {target!r}")
    if issubclass(target, enum.Enum):
        return _parse_enum(text, target)
    if issubclass(target, str):
        return target(text)
    for kind, parser in _PARSERS:
        if issubclass(target, kind):
            return parser(text)
    raise ValueError(f"no conversion rule for {target.__name__}")


def default_for(target: Any, *, nullable: bool = False) -> Any:
    """
    The fallback value used when lenient coercion fails.

    Nullable targets fall back to ``None``; everything else to its zero
    value (``0``, ``False``, ``datetime.min``, the nil UUID, the first
    enum member, ...).  ``None`` also stands in for types without a rule.
    """
    target, optional = unwrap_optional(target)
    if nullable or optional or not isinstance(target, type):
        return None
    if issubclass(target, enum.Enum):
        return next(iter(target), None)
    if issubclass(target, str):
        return ""
    if issubclass(target, bool):
        return False
    if issubclass(target, int):
        return 0
    if issubclass(target, float):
        return 0.0
    if issubclass(target, decimal.Decimal):
        return decimal.Decimal(0)
    if issubclass(target, datetime.datetime):
        return datetime.datetime.min
    if issubclass(target, datetime.date):
        return datetime.date.min
    if issubclass(target, datetime.time):
        return datetime.time.min
    if issubclass(target, uuid_module.UUID):
        return uuid_module.UUID(int=0)
    return None


_NAMED_TYPES: dict[str, type[Any]] = {
    "str": str,
    "int": int,
    "float": float,
    "decimal": decimal.Decimal,
    "bool": bool,
    "datetime": datetime.datetime,
    "date": datetime.date,
    "time": datetime.time,
    "uuid": uuid_module.UUID,
}


def coerce_named(value: Any, type_name: str) -> Any:
    """
    Cast *value* (or each element of a list) to the named type.

    Used by ``SpecificationFactory`` for the ``value_type`` key of a
    serialised leaf.  Non-text values are returned unchanged.
    """
    target = _NAMED_TYPES.get(type_name.lower())
    if target is None:
        raise ValueError(f"Unknown value_type: {type_name!r}")
    if isinstance(value, list):
        return [coerce_named(v, type_name) for v in value]
    if isinstance(value, str):
        return coerce_text(value, target)
    return value


# ---------------------------------------------------------------------------
# List parsing
# ---------------------------------------------------------------------------


def parse_list_value(value: Any) -> list[str]:
    """
    Split comma-separated text into trimmed, non-empty tokens.

    Python collections are passed through as lists of their ``str`` form.
    """
    if value is None:
        return []
    if isinstance(value, list | tuple | set | frozenset):
        tokens = [str(v) for v in value]
    else:
        tokens = str(value).split(",")
    return [t.strip() for t in tokens if t.strip()]


# ---------------------------------------------------------------------------
# Value → text
# ---------------------------------------------------------------------------


def format_invariant(value: Any) -> str | None:
    """
    Render *value* the way :func:`coerce_text` parses it back.

    Sequences become comma-separated text, so an element whose own text
    contains a comma raises :class:`ValueError`.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, datetime.datetime | datetime.date | datetime.time):
        return value.isoformat()
    if isinstance(value, list | tuple | set | frozenset):
        parts = [str(format_invariant(v)) for v in value]
        for part in parts:
            if "," in part:
                raise ValueError(f"list element {part!r} contains a comma")
        return ",".join(parts)
    return str(value)


def has_conversion_rule(target: Any) -> bool:
    """True when :func:`coerce_text` knows how to produce *target*."""
    target, _ = unwrap_optional(target)
    if not isinstance(target, type):
        return False
    if issubclass(target, enum.Enum | str):
        return True
    return any(issubclass(target, kind) for kind, _ in _PARSERS)
