"""Filter Model: flat, user-supplied criteria as validated pydantic models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..coercion import format_invariant

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
)


class FilterLogic(str, Enum):
    AND = "and"
    OR = "or"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


_DIRECTION_ALIASES = {
    "asc": SortDirection.ASC,
    "ascending": SortDirection.ASC,
    "desc": SortDirection.DESC,
    "descending": SortDirection.DESC,
}


class FilterItem(BaseModel):
    """
    One ``field operator value`` triple.

    ``field`` and ``operator`` are kept verbatim: field names are checked
    (and neutralised) by the compiler, operators are resolved through the
    alias table at compile time.  ``value`` is invariant-culture text;
    non-text payload values are rendered on the way in.
    """

    model_config = _MODEL_CONFIG

    field: str
    operator: str
    value: str | None = None

    @field_validator("operator", mode="before")
    @classmethod
    def _operator_text(cls, value: Any) -> Any:
        return getattr(value, "value", value)

    @field_validator("value", mode="before")
    @classmethod
    def _value_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return format_invariant(value)


class FilterGroup(BaseModel):
    model_config = _MODEL_CONFIG

    logic: FilterLogic = FilterLogic.AND
    items: list[FilterItem] = Field(default_factory=list)

    @field_validator("logic", mode="before")
    @classmethod
    def _logic_case(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class SortItem(BaseModel):
    model_config = _MODEL_CONFIG

    field: str
    direction: SortDirection = SortDirection.ASC

    @field_validator("direction", mode="before")
    @classmethod
    def _direction_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _DIRECTION_ALIASES.get(value.strip().lower(), value)
        return value

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC


class FilterModel(BaseModel):
    """
    A search term, top-level items, AND/OR groups and sort criteria.

    Accepts both snake_case and camelCase keys, so an API payload such as
    ``{"searchTerm": "lamp", "items": [...]}`` validates directly::

        model = FilterModel.model_validate(request_json)
    """

    model_config = _MODEL_CONFIG

    search_term: str | None = None
    items: list[FilterItem] = Field(default_factory=list)
    groups: list[FilterGroup] = Field(default_factory=list)
    sorts: list[SortItem] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when the model constrains nothing."""
        return (
            not (self.search_term and self.search_term.strip())
            and not self.items
            and not any(g.items for g in self.groups)
        )

    @property
    def item_count(self) -> int:
        return len(self.items) + sum(len(g.items) for g in self.groups)
