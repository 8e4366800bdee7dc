"""Canonical filter operators and their alias table."""

from __future__ import annotations

import re
from enum import Enum

from ..exceptions import OperatorNotFoundError
from ..operators import SpecificationOperator


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    IN = "in"
    NOT_IN = "not_in"

    @property
    def takes_value(self) -> bool:
        return self not in _VALUELESS

    @property
    def is_text(self) -> bool:
        return self in _TEXT

    @property
    def is_set(self) -> bool:
        return self in (FilterOperator.IN, FilterOperator.NOT_IN)


_VALUELESS = frozenset(
    {
        FilterOperator.IS_NULL,
        FilterOperator.IS_NOT_NULL,
        FilterOperator.IS_EMPTY,
        FilterOperator.IS_NOT_EMPTY,
    }
)
_TEXT = frozenset(
    {FilterOperator.CONTAINS, FilterOperator.STARTS_WITH, FilterOperator.ENDS_WITH}
)

# Keys are normalised: lowercase with "-", "_" and whitespace removed.
_OP_ALIASES: dict[str, FilterOperator] = {
    # Equality
    "eq": FilterOperator.EQUALS,
    "equal": FilterOperator.EQUALS,
    "=": FilterOperator.EQUALS,
    "==": FilterOperator.EQUALS,
    "ne": FilterOperator.NOT_EQUALS,
    "neq": FilterOperator.NOT_EQUALS,
    "notequal": FilterOperator.NOT_EQUALS,
    "!=": FilterOperator.NOT_EQUALS,
    "<>": FilterOperator.NOT_EQUALS,
    # Text
    "like": FilterOperator.CONTAINS,
    "sw": FilterOperator.STARTS_WITH,
    "beginswith": FilterOperator.STARTS_WITH,
    "ew": FilterOperator.ENDS_WITH,
    # Comparison
    "gt": FilterOperator.GREATER_THAN,
    ">": FilterOperator.GREATER_THAN,
    "gte": FilterOperator.GREATER_THAN_OR_EQUAL,
    "ge": FilterOperator.GREATER_THAN_OR_EQUAL,
    ">=": FilterOperator.GREATER_THAN_OR_EQUAL,
    "greaterorequal": FilterOperator.GREATER_THAN_OR_EQUAL,
    "lt": FilterOperator.LESS_THAN,
    "<": FilterOperator.LESS_THAN,
    "lte": FilterOperator.LESS_THAN_OR_EQUAL,
    "le": FilterOperator.LESS_THAN_OR_EQUAL,
    "<=": FilterOperator.LESS_THAN_OR_EQUAL,
    "lessorequal": FilterOperator.LESS_THAN_OR_EQUAL,
    # Null / empty
    "null": FilterOperator.IS_NULL,
    "notnull": FilterOperator.IS_NOT_NULL,
    "empty": FilterOperator.IS_EMPTY,
    "notempty": FilterOperator.IS_NOT_EMPTY,
    # Set
    "oneof": FilterOperator.IN,
    "nin": FilterOperator.NOT_IN,
    "noneof": FilterOperator.NOT_IN,
}

_STRIP_RE = re.compile(r"[-_\s]")


def _normalise(raw: str) -> str:
    return _STRIP_RE.sub("", raw.strip().lower())


# Canonical names resolve to themselves under the same normalisation.
_LOOKUP: dict[str, FilterOperator] = {
    **{_normalise(op.value): op for op in FilterOperator},
    **_OP_ALIASES,
}

# Mapping onto the specification AST operators.
_TO_SPECIFICATION: dict[FilterOperator, SpecificationOperator] = {
    FilterOperator.EQUALS: SpecificationOperator.EQ,
    FilterOperator.NOT_EQUALS: SpecificationOperator.NE,
    FilterOperator.CONTAINS: SpecificationOperator.CONTAINS,
    FilterOperator.STARTS_WITH: SpecificationOperator.STARTSWITH,
    FilterOperator.ENDS_WITH: SpecificationOperator.ENDSWITH,
    FilterOperator.GREATER_THAN: SpecificationOperator.GT,
    FilterOperator.GREATER_THAN_OR_EQUAL: SpecificationOperator.GE,
    FilterOperator.LESS_THAN: SpecificationOperator.LT,
    FilterOperator.LESS_THAN_OR_EQUAL: SpecificationOperator.LE,
    FilterOperator.IS_NULL: SpecificationOperator.IS_NULL,
    FilterOperator.IS_NOT_NULL: SpecificationOperator.IS_NOT_NULL,
    FilterOperator.IS_EMPTY: SpecificationOperator.IS_EMPTY,
    FilterOperator.IS_NOT_EMPTY: SpecificationOperator.IS_NOT_EMPTY,
    FilterOperator.IN: SpecificationOperator.IN,
    FilterOperator.NOT_IN: SpecificationOperator.NOT_IN,
}


def resolve_filter_operator(raw: FilterOperator | str) -> FilterOperator:
    """
    Resolve an operator string or alias to its canonical form.

    Raises:
        OperatorNotFoundError: When *raw* matches neither a canonical name
            nor an alias.
    """
    if isinstance(raw, FilterOperator):
        return raw
    resolved = _LOOKUP.get(_normalise(str(raw)))
    if resolved is None:
        raise OperatorNotFoundError(
            str(raw), sorted({op.value for op in FilterOperator} | set(_OP_ALIASES))
        )
    return resolved


def to_specification_operator(op: FilterOperator) -> SpecificationOperator:
    return _TO_SPECIFICATION[op]
