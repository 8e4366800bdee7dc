"""
Specification exception hierarchy with fuzzy-match suggestions.

All exceptions inherit from ``SpecificationError`` and provide
``to_dict()`` for API-friendly error responses.

Malformed *end-user* filter input never reaches this module: the filter
compiler neutralises it into a non-matching predicate.  Everything raised
here signals a programming or configuration mistake.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class SpecificationError(Exception):
    """Base exception for all specification errors."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class ValidationError(SpecificationError):
    """Specification structure validation failed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "VALIDATION_ERROR",
            "message": self.message,
            "path": self.path,
        }


class InvalidSpecificationError(ValidationError, ValueError):
    """A fluent mutator received an invalid argument or conflicting state."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INVALID_SPECIFICATION",
            "message": self.message,
            "path": self.path,
        }


class OperatorNotFoundError(SpecificationError):
    """
    Unknown operator specified.

    Provides fuzzy-matched suggestions for likely intended operators.
    """

    def __init__(self, operator: str, valid_operators: list[str]) -> None:
        self.operator = operator
        self.valid_operators = valid_operators
        self.suggestions = get_close_matches(operator, valid_operators, n=3, cutoff=0.6)

        message = f"Unknown operator: '{operator}'."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        message += f" Valid operators: {', '.join(sorted(valid_operators)[:10])}..."
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "OPERATOR_NOT_FOUND",
            "operator": self.operator,
            "suggestions": self.suggestions,
            "valid_operators": sorted(self.valid_operators),
        }


class FieldNotFoundError(SpecificationError):
    """
    Invalid field path with helpful suggestions.

    Raised for developer-supplied key paths (orderings, group keys,
    search fields, projections).  Example error message::

        Invalid field 'nmae' on 'Product'.
        Did you mean one of these?
          • name

        Available fields: id, name, price, ...
    """

    def __init__(
        self,
        invalid_field: str,
        model_name: str,
        available_fields: list[str],
        full_path: str | None = None,
        cutoff: float = 0.6,
    ) -> None:
        self.invalid_field = invalid_field
        self.model_name = model_name
        self.available_fields = available_fields
        self.full_path = full_path or invalid_field

        self.suggestions = get_close_matches(
            invalid_field, available_fields, n=5, cutoff=cutoff
        )

        message = self._build_message()
        super().__init__(message)

    def _build_message(self) -> str:
        lines = [f"Invalid field '{self.invalid_field}' on '{self.model_name}'."]
        if self.suggestions:
            lines.append("Did you mean one of these?")
            for s in self.suggestions:
                lines.append(f"  • {s}")

        sorted_fields = sorted(self.available_fields)
        preview = ", ".join(sorted_fields[:15])
        if len(sorted_fields) > 15:
            preview += ", ..."
        lines.append(f"Available fields: {preview}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "FIELD_NOT_FOUND",
            "field": self.invalid_field,
            "model": self.model_name,
            "full_path": self.full_path,
            "suggestions": self.suggestions,
            "available_fields": sorted(self.available_fields),
        }


class IncludeChainError(ValidationError):
    """
    An eager-load chain cannot be resolved.

    Raised at compile time when a link names an unknown attribute, an
    attribute that is not a relationship, or a shape no strategy handles.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str,
        owner: str | None = None,
        available_relations: list[str] | None = None,
    ) -> None:
        self.owner = owner
        self.available_relations = available_relations or []
        leaf = path.rsplit(".", 1)[-1]
        self.suggestions = get_close_matches(
            leaf, self.available_relations, n=3, cutoff=0.6
        )
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message, path=path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INCLUDE_CHAIN_ERROR",
            "message": self.message,
            "path": self.path,
            "owner": self.owner,
            "suggestions": self.suggestions,
        }


class PagingNotEnabledError(SpecificationError):
    """A paged query was requested for a specification without paging."""

    def to_dict(self) -> dict[str, Any]:
        return {"error": "PAGING_NOT_ENABLED", "message": str(self)}


class ProjectionError(SpecificationError):
    """The requested projection does not match the specification's selector."""

    def __init__(
        self,
        message: str,
        *,
        expected: type[Any] | None = None,
        requested: type[Any] | None = None,
    ) -> None:
        self.expected = expected
        self.requested = requested
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "PROJECTION_ERROR",
            "message": str(self),
            "expected": getattr(self.expected, "__name__", None),
            "requested": getattr(self.requested, "__name__", None),
        }
