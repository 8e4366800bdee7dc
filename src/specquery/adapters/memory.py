"""
In-memory queryable for unit tests and fakes.

Mirrors the SQLAlchemy queryable closely enough that a specification
yields the same rows against either source, with two documented
differences: grouping clusters keys in first-appearance order rather
than key order, and ``NO_TRACK`` returns shallow copies instead of
detached instances.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..ast import resolve_path
from ..includes import LinkShape
from ..specification import TrackingMode

if TYPE_CHECKING:
    from ..includes import IncludeStep
    from ..ports import ISpecification

logger = logging.getLogger("specquery.memory")

T = TypeVar("T")


@dataclass(frozen=True)
class _QueryState:
    predicates: tuple[ISpecification[Any], ...] = ()
    orderings: tuple[tuple[str, bool], ...] = ()
    group_key: str | None = None
    distinct: bool = False
    # ("skip" | "take", count) in call order
    window: tuple[tuple[str, int], ...] = ()
    includes: tuple[tuple[IncludeStep, ...], ...] = ()
    tracking: TrackingMode = TrackingMode.TRACK
    ignore_store_filters: bool = False
    tag: str | None = None
    split_fetch: bool = False


def _sort_key(value: Any) -> tuple[bool, Any]:
    return (value is not None, value)


def _sorter(key: str) -> Callable[[Any], tuple[bool, Any]]:
    return lambda row: _sort_key(resolve_path(row, key))


class InMemoryQueryable(Generic[T]):
    """
    Queryable over a Python sequence.

    ``store_filters`` play the part of a store's global filters (soft
    delete, tenancy); they apply unless :meth:`ignore_store_filters` was
    called.
    """

    def __init__(
        self,
        items: Iterable[T],
        entity_type: type[T],
        store_filters: Sequence[ISpecification[Any]] = (),
        *,
        _state: _QueryState | None = None,
    ) -> None:
        self._items = items if isinstance(items, list) else list(items)
        self._entity_type = entity_type
        self._store_filters = tuple(store_filters)
        self._state = _state or _QueryState()

    def _with(self, **changes: Any) -> InMemoryQueryable[T]:
        return InMemoryQueryable(
            self._items,
            self._entity_type,
            self._store_filters,
            _state=replace(self._state, **changes),
        )

    # -- introspection -------------------------------------------------------

    @property
    def entity_type(self) -> type[T]:
        return self._entity_type

    @property
    def include_log(self) -> tuple[tuple[IncludeStep, ...], ...]:
        """Every include chain applied, in call order."""
        return self._state.includes

    @property
    def tracking_mode(self) -> TrackingMode:
        return self._state.tracking

    @property
    def tag(self) -> str | None:
        return self._state.tag

    @property
    def split_fetch(self) -> bool:
        return self._state.split_fetch

    # -- generative operations -----------------------------------------------

    def with_tracking(self, mode: TrackingMode) -> InMemoryQueryable[T]:
        return self._with(tracking=mode)

    def ignore_store_filters(self) -> InMemoryQueryable[T]:
        return self._with(ignore_store_filters=True)

    def with_tag(self, tag: str) -> InMemoryQueryable[T]:
        return self._with(tag=tag)

    def with_split_fetch(self) -> InMemoryQueryable[T]:
        return self._with(split_fetch=True)

    def where(self, specification: ISpecification[Any]) -> InMemoryQueryable[T]:
        return self._with(predicates=(*self._state.predicates, specification))

    def include(self, steps: Sequence[IncludeStep]) -> InMemoryQueryable[T]:
        return self._with(includes=(*self._state.includes, tuple(steps)))

    def group_by(self, key: str) -> InMemoryQueryable[T]:
        return self._with(group_key=key)

    def distinct(self) -> InMemoryQueryable[T]:
        return self._with(distinct=True)

    def order_by(self, key: str, *, descending: bool = False) -> InMemoryQueryable[T]:
        return self._with(orderings=((key, descending),))

    def then_by(self, key: str, *, descending: bool = False) -> InMemoryQueryable[T]:
        return self._with(orderings=(*self._state.orderings, (key, descending)))

    def skip(self, count: int) -> InMemoryQueryable[T]:
        return self._with(window=(*self._state.window, ("skip", count)))

    def take(self, count: int) -> InMemoryQueryable[T]:
        return self._with(window=(*self._state.window, ("take", count)))

    # -- terminals -----------------------------------------------------------

    async def to_list(self) -> list[T]:
        rows = self._evaluate()
        for chain in self._state.includes:
            for row in rows:
                _walk(row, chain)
        return self._track(rows)

    async def first(self) -> T | None:
        rows = await self.take(1).to_list()
        return rows[0] if rows else None

    async def count(self) -> int:
        return len(self._evaluate())

    async def any(self) -> bool:
        return bool(self._evaluate())

    # -- evaluation ----------------------------------------------------------

    def _evaluate(self) -> list[T]:
        state = self._state
        rows = list(self._items)
        if self._store_filters and not state.ignore_store_filters:
            rows = [
                r
                for r in rows
                if all(f.is_satisfied_by(r) for f in self._store_filters)
            ]
        for predicate in state.predicates:
            rows = [r for r in rows if predicate.is_satisfied_by(r)]

        if state.group_key is not None:
            rows = _cluster(rows, state.group_key)
        if state.distinct:
            rows = _dedupe(rows)

        # Stable sorts applied last-key-first give lexicographic order.
        for key, descending in reversed(state.orderings):
            rows.sort(key=_sorter(key), reverse=descending)

        for op, count in state.window:
            rows = rows[count:] if op == "skip" else rows[:count]
        logger.debug(
            "Evaluated %s query%s: %d rows",
            self._entity_type.__name__,
            f" [{state.tag}]" if state.tag else "",
            len(rows),
        )
        return rows

    def _track(self, rows: list[T]) -> list[T]:
        mode = self._state.tracking
        if mode is TrackingMode.NO_TRACK:
            return [copy.copy(r) for r in rows]
        if mode is TrackingMode.NO_TRACK_IDENTITY_RESOLUTION:
            resolved: dict[int, T] = {}
            return [resolved.setdefault(id(r), copy.copy(r)) for r in rows]
        return rows


def _cluster(rows: list[T], key: str) -> list[T]:
    buckets: dict[Any, list[T]] = {}
    for row in rows:
        buckets.setdefault(_hashable(resolve_path(row, key)), []).append(row)
    return [row for bucket in buckets.values() for row in bucket]


def _dedupe(rows: list[T]) -> list[T]:
    unique: list[T] = []
    for row in rows:
        if row not in unique:
            unique.append(row)
    return unique


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


def _walk(row: Any, chain: Sequence[IncludeStep]) -> None:
    """Touch every object an include chain reaches from *row*."""
    current: list[Any] = [row]
    for step in chain:
        reached: list[Any] = []
        for value in current:
            related = getattr(value, step.name, None)
            if related is None:
                continue
            if step.shape is LinkShape.COLLECTION:
                reached.extend(related)
            else:
                reached.append(related)
        current = reached
