"""Comparison operators: =, !=, >, <, >=, <=.

Ordering comparisons never match a ``None`` on either side, mirroring SQL
three-valued logic so both backends agree.  Operands that cannot be
ordered against each other (naive vs aware datetimes, signalling NaN)
do not match either.
"""

from __future__ import annotations

import decimal
import operator as op_module
from collections.abc import Callable
from typing import Any

from ..evaluator import MemoryOperator
from ..operators import SpecificationOperator


def _ordered(
    compare: Callable[[Any, Any], Any], field_value: Any, condition_value: Any
) -> bool:
    if field_value is None or condition_value is None:
        return False
    try:
        return bool(compare(field_value, condition_value))
    except (TypeError, decimal.InvalidOperation):
        return False


class EqualOperator(MemoryOperator):
    @property
    def name(self) -> SpecificationOperator:
        return SpecificationOperator.EQ

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value == condition_value)


class NotEqualOperator(MemoryOperator):
    @property
    def name(self) -> SpecificationOperator:
        return SpecificationOperator.NE

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value != condition_value)


class GreaterThanOperator(MemoryOperator):
    @property
    def name(self) -> SpecificationOperator:
        return SpecificationOperator.GT

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return _ordered(op_module.gt, field_value, condition_value)


class LessThanOperator(MemoryOperator):
    @property
    def name(self) -> SpecificationOperator:
        return SpecificationOperator.LT

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return _ordered(op_module.lt, field_value, condition_value)


class GreaterEqualOperator(MemoryOperator):
    @property
    def name(self) -> SpecificationOperator:
        return SpecificationOperator.GE

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return _ordered(op_module.ge, field_value, condition_value)


class LessEqualOperator(MemoryOperator):
    @property
    def name(self) -> SpecificationOperator:
        return SpecificationOperator.LE

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return _ordered(op_module.le, field_value, condition_value)
