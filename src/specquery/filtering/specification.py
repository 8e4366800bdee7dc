"""Query specification driven by an end-user Filter Model."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from ..specification import QuerySpecification
from .compiler import FilterCompiler

if TYPE_CHECKING:
    from ..ports import ISpecification
    from .model import FilterModel

T = TypeVar("T")


class FilterSpecification(QuerySpecification[T]):
    """
    A :class:`QuerySpecification` whose predicate is a compiled filter
    model and whose orderings are the model's resolved sorts.

    The predicate is compiled once, at construction.  Includes, paging
    and the other mutators remain available on the instance.
    """

    def __init__(
        self,
        filter_model: FilterModel,
        entity_type: type[Any],
        compiler: FilterCompiler | None = None,
    ) -> None:
        super().__init__(entity_type=entity_type)
        self.filter_model = filter_model
        self._compiler = compiler or FilterCompiler()
        self._predicate = self._compiler.compile(filter_model, entity_type)
        for ordering in self._compiler.compile_sorts(filter_model.sorts, entity_type):
            if ordering.descending:
                self.order_by_descending(ordering.key)
            else:
                self.order_by(ordering.key)

    def to_expression(self) -> ISpecification[T]:
        return self._predicate
