"""
Composable predicate specifications.

These are pure boolean combinators over a predicate.  They never carry
structural query settings (includes, ordering, paging); those live on
:class:`specquery.specification.QuerySpecification`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .operators import SpecificationOperator

if TYPE_CHECKING:
    from .ports import ISpecification

T = TypeVar("T", contravariant=True)


class BaseSpecification(Generic[T]):
    """Base class for specifications with logic operator support."""

    def is_satisfied_by(self, candidate: T) -> bool:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    def __and__(self, other: ISpecification[T]) -> AndSpecification[T]:
        return AndSpecification(self, other)

    def __or__(self, other: ISpecification[T]) -> OrSpecification[T]:
        return OrSpecification(self, other)

    def __invert__(self) -> NotSpecification[T]:
        return NotSpecification(self)

    def merge(self, other: ISpecification[T]) -> AndSpecification[T]:
        """Merge with another specification using logical AND."""
        return AndSpecification(self, other)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"


class AndSpecification(BaseSpecification[T]):
    """Logical AND composite specification.  Empty means match-all."""

    def __init__(self, *specifications: ISpecification[T]) -> None:
        self.specifications = specifications

    def is_satisfied_by(self, candidate: T) -> bool:
        return all(spec.is_satisfied_by(candidate) for spec in self.specifications)

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": "and",
            "conditions": [spec.to_dict() for spec in self.specifications],
        }


class OrSpecification(BaseSpecification[T]):
    """Logical OR composite specification.  Empty means match-none."""

    def __init__(self, *specifications: ISpecification[T]) -> None:
        self.specifications = specifications

    def is_satisfied_by(self, candidate: T) -> bool:
        return any(spec.is_satisfied_by(candidate) for spec in self.specifications)

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": "or",
            "conditions": [spec.to_dict() for spec in self.specifications],
        }


class NotSpecification(BaseSpecification[T]):
    """Logical NOT composite specification."""

    def __init__(self, specification: ISpecification[T]) -> None:
        self.specification = specification

    def is_satisfied_by(self, candidate: T) -> bool:
        return not self.specification.is_satisfied_by(candidate)

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": "not",
            "conditions": [self.specification.to_dict()],
        }


class ConstantSpecification(BaseSpecification[T]):
    """
    Specification with a fixed outcome.

    ``ConstantSpecification(True)`` is the identity predicate;
    ``ConstantSpecification(False)`` is the fail-closed result for
    unusable filter input.
    """

    def __init__(self, value: bool) -> None:
        self.value = bool(value)

    def is_satisfied_by(self, candidate: T) -> bool:  # noqa: ARG002
        return self.value

    def to_dict(self) -> dict[str, Any]:
        op = SpecificationOperator.TRUE if self.value else SpecificationOperator.FALSE
        return {"op": op.value}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConstantSpecification):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash((ConstantSpecification, self.value))


def match_all() -> ConstantSpecification[Any]:
    return ConstantSpecification(True)


def match_none() -> ConstantSpecification[Any]:
    return ConstantSpecification(False)


def is_constant(spec: Any, value: bool) -> bool:
    """True when *spec* is a constant specification with the given outcome."""
    return isinstance(spec, ConstantSpecification) and spec.value is value


def all_of(*specs: ISpecification[Any]) -> ISpecification[Any]:
    """
    AND-combine *specs*, folding constants.

    Any constant ``false`` short-circuits to ``false``; constant ``true``
    members are dropped.  No remaining members means match-all.
    """
    members: list[ISpecification[Any]] = []
    for spec in specs:
        if is_constant(spec, False):
            return match_none()
        if not is_constant(spec, True):
            members.append(spec)
    if not members:
        return match_all()
    return members[0] if len(members) == 1 else AndSpecification(*members)


def any_of(*specs: ISpecification[Any]) -> ISpecification[Any]:
    """OR-combine *specs*, folding constants.  No members means match-none."""
    members: list[ISpecification[Any]] = []
    for spec in specs:
        if is_constant(spec, True):
            return match_all()
        if not is_constant(spec, False):
            members.append(spec)
    if not members:
        return match_none()
    return members[0] if len(members) == 1 else OrSpecification(*members)
