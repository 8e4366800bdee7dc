"""
SQLAlchemy 2.x async queryable.

Builds a single ``Select`` per terminal call from an immutable query
state.  Predicates are compiled eagerly in :meth:`where`, so an unknown
attribute fails at compile time rather than on execution.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, asc, desc, func, select
from sqlalchemy.orm import aliased, with_loader_criteria

from ...specification import TrackingMode
from .compiler import build_sqla_filter, mapped_attribute
from .loading import build_loader_option

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from ...includes import IncludeStep
    from ...ports import ISpecification
    from .strategy import SQLAlchemyOperatorRegistry

logger = logging.getLogger("specquery.sqlalchemy")

T = TypeVar("T")


@dataclass(frozen=True)
class _QueryState:
    clauses: tuple[ColumnElement[bool], ...] = ()
    orderings: tuple[tuple[str, bool], ...] = ()
    group_key: str | None = None
    distinct: bool = False
    offset: int = 0
    limit: int | None = None
    includes: tuple[tuple[IncludeStep, ...], ...] = ()
    tracking: TrackingMode = TrackingMode.TRACK
    ignore_store_filters: bool = False
    tag: str | None = None
    split_fetch: bool = False


def _comment(tag: str) -> str:
    safe = " ".join(tag.replace("*/", "* /").replace("/*", "/ *").split())
    return f"/* {safe} */"


class SQLAlchemyQueryable(Generic[T]):
    """
    Queryable over a mapped class in an ``AsyncSession``.

    ``store_filters`` maps entity types to global filters (soft delete,
    tenancy).  The filter of the queried model becomes part of the WHERE
    clause; filters of other entities apply to eagerly loaded relations
    through ``with_loader_criteria``.
    """

    def __init__(
        self,
        session: AsyncSession,
        model: type[T],
        store_filters: Mapping[type[Any], ISpecification[Any]] | None = None,
        registry: SQLAlchemyOperatorRegistry | None = None,
        *,
        _state: _QueryState | None = None,
    ) -> None:
        self._session = session
        self._model = model
        self._store_filters = dict(store_filters or {})
        self._registry = registry
        self._state = _state or _QueryState()

    def _with(self, **changes: Any) -> SQLAlchemyQueryable[T]:
        return SQLAlchemyQueryable(
            self._session,
            self._model,
            self._store_filters,
            self._registry,
            _state=replace(self._state, **changes),
        )

    @property
    def entity_type(self) -> type[T]:
        return self._model

    # -- generative operations -----------------------------------------------

    def with_tracking(self, mode: TrackingMode) -> SQLAlchemyQueryable[T]:
        return self._with(tracking=mode)

    def ignore_store_filters(self) -> SQLAlchemyQueryable[T]:
        return self._with(ignore_store_filters=True)

    def with_tag(self, tag: str) -> SQLAlchemyQueryable[T]:
        return self._with(tag=tag)

    def with_split_fetch(self) -> SQLAlchemyQueryable[T]:
        return self._with(split_fetch=True)

    def where(self, specification: ISpecification[Any]) -> SQLAlchemyQueryable[T]:
        clause = build_sqla_filter(
            self._model, specification.to_dict(), registry=self._registry
        )
        return self._with(clauses=(*self._state.clauses, clause))

    def include(self, steps: Sequence[IncludeStep]) -> SQLAlchemyQueryable[T]:
        return self._with(includes=(*self._state.includes, tuple(steps)))

    def group_by(self, key: str) -> SQLAlchemyQueryable[T]:
        return self._with(group_key=key)

    def distinct(self) -> SQLAlchemyQueryable[T]:
        return self._with(distinct=True)

    def order_by(self, key: str, *, descending: bool = False) -> SQLAlchemyQueryable[T]:
        return self._with(orderings=((key, descending),))

    def then_by(self, key: str, *, descending: bool = False) -> SQLAlchemyQueryable[T]:
        return self._with(orderings=(*self._state.orderings, (key, descending)))

    def skip(self, count: int) -> SQLAlchemyQueryable[T]:
        state = self._state
        limit = None if state.limit is None else max(0, state.limit - count)
        return self._with(offset=state.offset + count, limit=limit)

    def take(self, count: int) -> SQLAlchemyQueryable[T]:
        limit = count if self._state.limit is None else min(self._state.limit, count)
        return self._with(limit=limit)

    # -- statement construction ----------------------------------------------

    def statement(self, *, for_rows: bool = True) -> Select[Any]:
        """
        The ``Select`` this queryable executes.

        With ``for_rows=False`` ordering and loader options are left out,
        which is the shape used for counting.
        """
        state = self._state
        stmt: Select[Any] = select(self._model)
        if state.tag:
            stmt = stmt.prefix_with(_comment(state.tag))

        if not state.ignore_store_filters:
            root_filter = self._store_filters.get(self._model)
            if root_filter is not None:
                stmt = stmt.where(
                    build_sqla_filter(
                        self._model, root_filter.to_dict(), registry=self._registry
                    )
                )
        if state.clauses:
            stmt = stmt.where(*state.clauses)
        if state.distinct:
            stmt = stmt.distinct()

        if for_rows:
            stmt = self._apply_ordering(stmt)
            for chain in state.includes:
                stmt = stmt.options(
                    build_loader_option(chain, split_fetch=state.split_fetch)
                )
            if not state.ignore_store_filters:
                for entity, spec in self._store_filters.items():
                    if entity is self._model:
                        continue
                    stmt = stmt.options(
                        with_loader_criteria(
                            entity,
                            build_sqla_filter(
                                entity, spec.to_dict(), registry=self._registry
                            ),
                            include_aliases=True,
                        )
                    )

        if state.offset:
            stmt = stmt.offset(state.offset)
        if state.limit is not None:
            stmt = stmt.limit(state.limit)
        return stmt

    def _apply_ordering(self, stmt: Select[Any]) -> Select[Any]:
        keys = list(self._state.orderings)
        if self._state.group_key is not None:
            # Rows of equal key come out adjacent; explicit orderings win.
            keys.append((self._state.group_key, False))
        joined: dict[str, Any] = {}
        clauses = []
        for key, descending in keys:
            stmt, column = self._key_column(stmt, key, joined)
            clauses.append(desc(column) if descending else asc(column))
        return stmt.order_by(*clauses) if clauses else stmt

    def _key_column(
        self, stmt: Select[Any], key: str, joined: dict[str, Any]
    ) -> tuple[Select[Any], Any]:
        """Resolve a dotted key, outer-joining each reference once."""
        owner: Any = self._model
        mapped: type[Any] = self._model
        parts = key.split(".")
        walked: list[str] = []
        for part in parts[:-1]:
            walked.append(part)
            prefix = ".".join(walked)
            relation = mapped_attribute(mapped, part, full_path=key)
            target = relation.property.mapper.class_
            if prefix not in joined:
                alias = aliased(target)
                stmt = stmt.outerjoin(getattr(owner, part).of_type(alias))
                joined[prefix] = alias
            owner, mapped = joined[prefix], target
        mapped_attribute(mapped, parts[-1], full_path=key)
        return stmt, getattr(owner, parts[-1])

    # -- terminals -----------------------------------------------------------

    async def to_list(self) -> list[T]:
        stmt = self.statement()
        tracking = self._state.tracking is TrackingMode.TRACK
        # Rows another caller already holds stay attached to the session.
        present: set[int] = set()
        if not tracking:
            present = {id(o) for o in self._session.identity_map.values()}
        logger.debug("Executing %s", stmt)
        result = await self._session.execute(stmt)
        rows = list(result.unique().scalars().all())
        if not tracking:
            for row in rows:
                if id(row) not in present:
                    self._session.expunge(row)
        return rows

    async def first(self) -> T | None:
        rows = await self.take(1).to_list()
        return rows[0] if rows else None

    async def count(self) -> int:
        inner = self.statement(for_rows=False).subquery()
        total = await self._session.scalar(select(func.count()).select_from(inner))
        return int(total or 0)

    async def any(self) -> bool:
        if self._state.limit == 0:
            return False
        inner = self.statement(for_rows=False).limit(1)
        return bool(await self._session.scalar(select(inner.exists())))
