"""
Protocols the compilation engine depends on.

``ISpecification`` is the predicate contract shared by every specification
tree.  ``IQueryable`` is the queryable source the assembler drives; it is
implemented by the adapters in :mod:`specquery.adapters`.
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    Protocol,
    TypeVar,
    runtime_checkable,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .includes import IncludeStep
    from .specification import TrackingMode

T_co = TypeVar("T_co", covariant=True)
T_contra = TypeVar("T_contra", contravariant=True)


@runtime_checkable
class ISpecification(Protocol, Generic[T_contra]):
    """
    Protocol for the Specification pattern.
    Used to encapsulate business rules for querying and filtering entities.
    """

    def is_satisfied_by(self, candidate: T_contra) -> bool:
        """
        Check if the candidate satisfies the specification.
        Used for in-memory filtering.
        """
        ...

    def to_dict(self) -> dict[str, Any]:
        """
        Return a dictionary representation of the specification.
        Backends compile this tree into native predicates.
        """
        ...


@runtime_checkable
class IQueryable(Protocol[T_co]):
    """
    A typed, not-yet-executed query over a data store.

    Every non-terminal operation is generative: it returns a new queryable
    and leaves the receiver untouched.  Terminals are coroutines so that
    cancelling the awaiting task cancels store I/O.
    """

    @property
    def entity_type(self) -> type[T_co]: ...

    def with_tracking(self, mode: TrackingMode) -> IQueryable[T_co]: ...

    def ignore_store_filters(self) -> IQueryable[T_co]: ...

    def with_tag(self, tag: str) -> IQueryable[T_co]: ...

    def with_split_fetch(self) -> IQueryable[T_co]: ...

    def where(self, specification: ISpecification[Any]) -> IQueryable[T_co]: ...

    def include(self, steps: Sequence[IncludeStep]) -> IQueryable[T_co]: ...

    def group_by(self, key: str) -> IQueryable[T_co]: ...

    def distinct(self) -> IQueryable[T_co]: ...

    def order_by(self, key: str, *, descending: bool = False) -> IQueryable[T_co]: ...

    def then_by(self, key: str, *, descending: bool = False) -> IQueryable[T_co]: ...

    def skip(self, count: int) -> IQueryable[T_co]: ...

    def take(self, count: int) -> IQueryable[T_co]: ...

    async def to_list(self) -> list[T_co]: ...

    async def first(self) -> T_co | None: ...

    async def count(self) -> int: ...

    async def any(self) -> bool: ...
