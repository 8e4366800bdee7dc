"""
Specification executor.

:class:`SpecificationRepository` compiles a specification against a fresh
queryable from ``source_factory`` and awaits one terminal operation.
It accepts three kinds of criteria everywhere:

- a :class:`QuerySpecification`
- a bare predicate (anything with ``is_satisfied_by`` and ``to_dict``)
- a :class:`FilterModel` from an end user

Cancelling the awaiting task cancels the store call; store errors
propagate unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from .ast import AttributeSpecification, resolve_path
from .compiler import QueryCompiler
from .exceptions import (
    InvalidSpecificationError,
    PagingNotEnabledError,
    ProjectionError,
)
from .filtering import FilterCompiler, FilterModel, FilterSpecification
from .operators import SpecificationOperator
from .pagination import CursorPage, Page
from .ports import IQueryable
from .specification import QuerySpecification

logger = logging.getLogger("specquery.repository")

T = TypeVar("T")
R = TypeVar("R")

SourceFactory = Callable[[], IQueryable[T]]


class SpecificationRepository(Generic[T]):
    """
    Read-side repository driven entirely by specifications.

    Example::

        repo = SpecificationRepository(
            Order, lambda: SQLAlchemyQueryable(session, Order)
        )
        page = await repo.find_paged(RecentOrders(customer_id=7))
    """

    def __init__(
        self,
        entity_type: type[T],
        source_factory: SourceFactory[T],
        compiler: QueryCompiler | None = None,
        filter_compiler: FilterCompiler | None = None,
    ) -> None:
        self.entity_type = entity_type
        self._source_factory = source_factory
        self._compiler = compiler or QueryCompiler()
        self._filter_compiler = filter_compiler or FilterCompiler(
            catalog=self._compiler.catalog, registry=self._compiler.registry
        )

    # -- queries -------------------------------------------------------------

    async def find_many(self, criteria: Any = None) -> list[T]:
        spec = self._normalise(criteria)
        return await self._compiler.compile_query(spec, self._source()).to_list()

    async def find_one(self, criteria: Any = None) -> T | None:
        """First match in specification order, or ``None``."""
        spec = self._normalise(criteria)
        return await self._compiler.compile_query(spec, self._source()).first()

    async def exists(self, criteria: Any = None) -> bool:
        spec = self._normalise(criteria)
        query = self._compiler.compile_query_without_paging(spec, self._source())
        return await query.any()

    async def count(self, criteria: Any = None) -> int:
        """Number of matches, ignoring ordering and paging."""
        spec = self._normalise(criteria)
        query = self._compiler.compile_query_without_paging(spec, self._source())
        return await query.count()

    async def find_paged(self, criteria: Any) -> Page[T]:
        """
        Load the page selected by the specification and the unpaged total.

        Raises:
            PagingNotEnabledError: The specification has no paging.
        """
        spec = self._normalise(criteria)
        if not spec.paging_enabled or spec.skip is None or spec.take is None:
            raise PagingNotEnabledError(
                f"{type(spec).__name__} does not enable paging; "
                f"call apply_paging_by_index() or apply_paging_by_skip_and_take()"
            )
        items = await self._compiler.compile_query(spec, self._source()).to_list()
        total = await self._compiler.compile_query_without_paging(
            spec, self._source()
        ).count()
        logger.debug(
            "Page of %s: skip=%d take=%d returned=%d total=%d",
            self.entity_type.__name__,
            spec.skip,
            spec.take,
            len(items),
            total,
        )
        return Page(
            items=items,
            page_index=spec.skip // spec.take,
            page_size=spec.take,
            total_count=total,
        )

    async def find_cursor_page(
        self,
        criteria: Any,
        key: str,
        size: int,
        after: Any = None,
    ) -> CursorPage[T]:
        """
        Keyset page: rows with ``key > after`` ordered by *key*.

        The specification's own orderings and paging are replaced by the
        key ordering; one extra row is read to detect a following page.
        """
        if size <= 0:
            raise InvalidSpecificationError("size must be > 0")
        spec = self._normalise(criteria)
        path = self._compiler.canonical_key(self.entity_type, key)

        query = self._compiler.compile_query_without_paging(spec, self._source())
        if after is not None:
            query = query.where(
                AttributeSpecification(
                    path,
                    SpecificationOperator.GT,
                    after,
                    registry=self._compiler.registry,
                )
            )
        rows = await query.order_by(path).take(size + 1).to_list()

        items = rows[:size]
        return CursorPage(
            items=items,
            has_next=len(rows) > size,
            first_cursor=resolve_path(items[0], path) if items else None,
            last_cursor=resolve_path(items[-1], path) if items else None,
            size=size,
        )

    async def find_projected(
        self, criteria: QuerySpecification[T], result_type: type[R]
    ) -> list[R]:
        """
        Run *criteria* and map each entity through its selector.

        Raises:
            ProjectionError: The specification has no selector, or its
                selector produces a different type.
        """
        spec = self._normalise(criteria)
        selector = spec.selector
        if selector is None:
            raise ProjectionError(
                f"{type(spec).__name__} has no selector; call apply_selector()",
                requested=result_type,
            )
        if selector.result_type is not result_type:
            raise ProjectionError(
                f"{type(spec).__name__} projects to {selector.result_type.__name__}, "
                f"not {result_type.__name__}",
                expected=selector.result_type,
                requested=result_type,
            )
        paths = {
            name: self._compiler.canonical_key(self.entity_type, path)
            for name, path in selector.fields.items()
        }
        rows = await self._compiler.compile_query(spec, self._source()).to_list()
        return [
            result_type(**{name: resolve_path(row, p) for name, p in paths.items()})
            for row in rows
        ]

    # -- internals -----------------------------------------------------------

    def _source(self) -> IQueryable[T]:
        return self._source_factory()

    def _normalise(self, criteria: Any) -> QuerySpecification[T]:
        if isinstance(criteria, QuerySpecification):
            return criteria
        if isinstance(criteria, FilterModel):
            return FilterSpecification(
                criteria, self.entity_type, compiler=self._filter_compiler
            )
        if criteria is None:
            return QuerySpecification(entity_type=self.entity_type)
        if hasattr(criteria, "is_satisfied_by") and hasattr(criteria, "to_dict"):
            return QuerySpecification(criteria, entity_type=self.entity_type)
        raise InvalidSpecificationError(
            f"Unsupported criteria type: {type(criteria).__name__}"
        )
