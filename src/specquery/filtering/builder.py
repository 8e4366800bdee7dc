"""
Fluent construction of :class:`FilterModel` payloads.

Example::

    model = (
        FilterBuilder()
        .where_greater_than_or_equal("price", 100)
        .or_group()
            .where_equals("featured", True)
            .where_greater_than("rating", 4.5)
        .end_group()
        .order_by_descending("rating")
        .build()
    )
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..coercion import format_invariant
from ..exceptions import InvalidSpecificationError
from .model import (
    FilterGroup,
    FilterItem,
    FilterLogic,
    FilterModel,
    SortDirection,
    SortItem,
)
from .operators import FilterOperator


class FilterBuilder:
    """
    Accumulates items, groups and sorts, then emits an immutable model.

    Groups do not nest: the model has one level of AND/OR groups, so
    opening a group while another is open raises.
    """

    def __init__(self) -> None:
        self._search_term: str | None = None
        self._items: list[FilterItem] = []
        self._groups: list[FilterGroup] = []
        self._sorts: list[SortItem] = []
        self._open: tuple[FilterLogic, list[FilterItem]] | None = None

    # -- search --------------------------------------------------------------

    def search(self, term: str | None) -> FilterBuilder:
        self._search_term = term
        return self

    # -- items ---------------------------------------------------------------

    def where(
        self, field: str, operator: FilterOperator | str, value: Any = None
    ) -> FilterBuilder:
        try:
            if isinstance(value, Iterable) and not isinstance(value, str | bytes):
                text = format_invariant(list(value))
            else:
                text = format_invariant(value)
        except ValueError as exc:
            raise InvalidSpecificationError(f"{field}: {exc}") from exc
        self._target().append(FilterItem(field=field, operator=operator, value=text))
        return self

    def where_equals(self, field: str, value: Any) -> FilterBuilder:
        return self.where(field, FilterOperator.EQUALS, value)

    def where_not_equals(self, field: str, value: Any) -> FilterBuilder:
        return self.where(field, FilterOperator.NOT_EQUALS, value)

    def where_contains(self, field: str, value: str) -> FilterBuilder:
        return self.where(field, FilterOperator.CONTAINS, value)

    def where_starts_with(self, field: str, value: str) -> FilterBuilder:
        return self.where(field, FilterOperator.STARTS_WITH, value)

    def where_ends_with(self, field: str, value: str) -> FilterBuilder:
        return self.where(field, FilterOperator.ENDS_WITH, value)

    def where_greater_than(self, field: str, value: Any) -> FilterBuilder:
        return self.where(field, FilterOperator.GREATER_THAN, value)

    def where_greater_than_or_equal(self, field: str, value: Any) -> FilterBuilder:
        return self.where(field, FilterOperator.GREATER_THAN_OR_EQUAL, value)

    def where_less_than(self, field: str, value: Any) -> FilterBuilder:
        return self.where(field, FilterOperator.LESS_THAN, value)

    def where_less_than_or_equal(self, field: str, value: Any) -> FilterBuilder:
        return self.where(field, FilterOperator.LESS_THAN_OR_EQUAL, value)

    def where_null(self, field: str) -> FilterBuilder:
        return self.where(field, FilterOperator.IS_NULL)

    def where_not_null(self, field: str) -> FilterBuilder:
        return self.where(field, FilterOperator.IS_NOT_NULL)

    def where_empty(self, field: str) -> FilterBuilder:
        return self.where(field, FilterOperator.IS_EMPTY)

    def where_not_empty(self, field: str) -> FilterBuilder:
        return self.where(field, FilterOperator.IS_NOT_EMPTY)

    def where_in(self, field: str, values: Iterable[Any]) -> FilterBuilder:
        """Values travel as comma-separated text and must not contain commas."""
        return self.where(field, FilterOperator.IN, list(values))

    def where_not_in(self, field: str, values: Iterable[Any]) -> FilterBuilder:
        return self.where(field, FilterOperator.NOT_IN, list(values))

    def where_between(self, field: str, low: Any, high: Any) -> FilterBuilder:
        """Inclusive range, emitted as ``>= low`` and ``<= high`` items."""
        self.where_greater_than_or_equal(field, low)
        return self.where_less_than_or_equal(field, high)

    # -- groups --------------------------------------------------------------

    def and_group(self) -> FilterBuilder:
        return self._open_group(FilterLogic.AND)

    def or_group(self) -> FilterBuilder:
        return self._open_group(FilterLogic.OR)

    def end_group(self) -> FilterBuilder:
        if self._open is None:
            raise InvalidSpecificationError("No open filter group to close")
        logic, items = self._open
        self._groups.append(FilterGroup(logic=logic, items=items))
        self._open = None
        return self

    # -- sorting -------------------------------------------------------------

    def order_by(self, field: str) -> FilterBuilder:
        self._sorts.append(SortItem(field=field, direction=SortDirection.ASC))
        return self

    def order_by_descending(self, field: str) -> FilterBuilder:
        self._sorts.append(SortItem(field=field, direction=SortDirection.DESC))
        return self

    # -- build ---------------------------------------------------------------

    def build(self) -> FilterModel:
        if self._open is not None:
            raise InvalidSpecificationError(
                "A filter group is still open; call end_group() before build()"
            )
        return FilterModel(
            search_term=self._search_term,
            items=list(self._items),
            groups=list(self._groups),
            sorts=list(self._sorts),
        )

    # -- internals -----------------------------------------------------------

    def _open_group(self, logic: FilterLogic) -> FilterBuilder:
        if self._open is not None:
            raise InvalidSpecificationError("Filter groups cannot be nested")
        self._open = (logic, [])
        return self

    def _target(self) -> list[FilterItem]:
        if self._open is not None:
            return self._open[1]
        return self._items
