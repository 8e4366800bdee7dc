from enum import Enum


class SpecificationOperator(str, Enum):
    """Operators understood by specification trees and their backends."""

    # Standard comparison
    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    IN = "in"
    NOT_IN = "not_in"

    # String operations
    CONTAINS = "contains"
    ICONTAINS = "icontains"
    STARTSWITH = "startswith"
    ENDSWITH = "endswith"

    # Null/Empty checks
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"

    # Constants
    TRUE = "true"
    FALSE = "false"

    # Logical operators
    AND = "and"
    OR = "or"
    NOT = "not"


LOGICAL_OPERATORS: frozenset[SpecificationOperator] = frozenset(
    {SpecificationOperator.AND, SpecificationOperator.OR, SpecificationOperator.NOT}
)
CONSTANT_OPERATORS: frozenset[SpecificationOperator] = frozenset(
    {SpecificationOperator.TRUE, SpecificationOperator.FALSE}
)
