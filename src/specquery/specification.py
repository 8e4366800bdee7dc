"""
Full query specifications.

A :class:`QuerySpecification` describes *what* to load: a predicate plus
eager-load paths, ordering, paging, grouping, tracking and projection.
It is built once through chained mutators, usually inside a subclass::

    class RecentOrders(QuerySpecification[Order]):
        entity_type = Order

        def __init__(self, customer_id: int) -> None:
            super().__init__()
            self.customer_id = customer_id
            self.include("items").then_include("product")
            self.order_by_descending("placed_at")
            self.apply_paging_by_index(0, 20)

        def to_expression(self) -> ISpecification[Order]:
            return AttributeSpecification(
                "customer_id", "=", self.customer_id, registry=REGISTRY
            )

and then handed to :class:`specquery.compiler.QueryCompiler`, which reads
it but never mutates it.

The ``&``, ``|`` and ``~`` operators combine only the *predicates* of two
specifications and return plain composable specifications; includes,
ordering and paging are deliberately not merged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from .base import AndSpecification, NotSpecification, OrSpecification, match_all
from .exceptions import InvalidSpecificationError
from .includes import resolve_link
from .metadata import EntityCatalog

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .ports import ISpecification

T = TypeVar("T")

_SEGMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class TrackingMode(str, Enum):
    TRACK = "track"
    NO_TRACK = "no_track"
    NO_TRACK_IDENTITY_RESOLUTION = "no_track_identity_resolution"


@dataclass(frozen=True)
class Ordering:
    key: str
    descending: bool = False


@dataclass(frozen=True)
class Projection:
    """Map an entity onto ``result_type`` via ``{result_field: entity_path}``."""

    result_type: type[Any]
    fields: Mapping[str, str]


@dataclass(eq=False)
class IncludeNode:
    """
    One link of an eager-load chain.

    ``children`` are the then-include continuations of this link.  The
    type attributes are filled in when the owning specification knows its
    entity type; otherwise the include planner resolves them at compile
    time without touching the node.
    """

    path: str
    parent: IncludeNode | None = None
    children: list[IncludeNode] = field(default_factory=list)
    owner_type: type[Any] | None = None
    target_type: type[Any] | None = None
    return_type: Any = None
    is_collection_link: bool | None = None

    @property
    def full_path(self) -> str:
        if self.parent is None:
            return self.path
        return f"{self.parent.full_path}.{self.path}"

    @property
    def is_resolved(self) -> bool:
        return self.target_type is not None


class IncludeBuilder(Generic[T]):
    """Continuation handle returned by :meth:`QuerySpecification.include`."""

    def __init__(self, specification: QuerySpecification[T], node: IncludeNode) -> None:
        self._specification = specification
        self._node = node

    @property
    def node(self) -> IncludeNode:
        return self._node

    def then_include(self, path: str) -> IncludeBuilder[T]:
        """Eager-load *path* on the entities reached by the current link."""
        child = self._specification._new_node(path, parent=self._node)
        self._node.children.append(child)
        return IncludeBuilder(self._specification, child)

    def end(self) -> QuerySpecification[T]:
        return self._specification


def key_path(selector: Any) -> str:
    """
    Normalise a key selector to an attribute path.

    Accepts dotted attribute paths or objects exposing ``.key`` (such as
    SQLAlchemy instrumented attributes).
    """
    if isinstance(selector, str):
        path = selector.strip()
    else:
        path = getattr(selector, "key", None)
    if not isinstance(path, str) or not path or not all(
        _SEGMENT_RE.match(part) for part in path.split(".")
    ):
        raise InvalidSpecificationError(f"Invalid key selector: {selector!r}")
    return path


def _predicate(other: Any) -> ISpecification[Any]:
    if isinstance(other, QuerySpecification):
        return other.to_expression()
    return other


class QuerySpecification(Generic[T]):
    """Declarative description of a query over entities of type ``T``."""

    entity_type: ClassVar[type[Any] | None] = None

    def __init__(
        self,
        criteria: ISpecification[T] | None = None,
        *,
        entity_type: type[Any] | None = None,
        catalog: EntityCatalog | None = None,
    ) -> None:
        self._criteria = criteria
        if entity_type is not None:
            self.entity_type = entity_type  # type: ignore[misc]
        self._catalog = catalog or EntityCatalog.default()

        self._includes: list[str] = []
        self._include_chains: list[IncludeNode] = []
        self._include_strings: list[str] = []
        self._additional_criteria: list[ISpecification[T]] = []
        self._orderings: list[Ordering] = []
        self._skip: int | None = None
        self._take: int | None = None
        self._paging_enabled = False
        self._limit: int | None = None
        self._group_key: str | None = None
        self._distinct = False
        self._tracking_mode = TrackingMode.TRACK
        self._ignore_store_filters = False
        self._split_fetch = False
        self._tag: str | None = None
        self._search_term: str | None = None
        self._search_fields: tuple[str, ...] = ()
        self._selector: Projection | None = None

    # -- predicate -----------------------------------------------------------

    def to_expression(self) -> ISpecification[T]:
        """The core predicate.  Subclasses override; default matches all."""
        if self._criteria is None:
            return match_all()
        return self._criteria

    def __and__(self, other: Any) -> AndSpecification[T]:
        return AndSpecification(self.to_expression(), _predicate(other))

    def __or__(self, other: Any) -> OrSpecification[T]:
        return OrSpecification(self.to_expression(), _predicate(other))

    def __invert__(self) -> NotSpecification[T]:
        return NotSpecification(self.to_expression())

    # -- read-only view ------------------------------------------------------

    @property
    def includes(self) -> tuple[str, ...]:
        return tuple(self._includes)

    @property
    def include_chains(self) -> tuple[IncludeNode, ...]:
        return tuple(self._include_chains)

    @property
    def include_strings(self) -> tuple[str, ...]:
        return tuple(self._include_strings)

    @property
    def additional_criteria(self) -> tuple[ISpecification[T], ...]:
        return tuple(self._additional_criteria)

    @property
    def orderings(self) -> tuple[Ordering, ...]:
        return tuple(self._orderings)

    @property
    def skip(self) -> int | None:
        return self._skip

    @property
    def take(self) -> int | None:
        return self._take

    @property
    def paging_enabled(self) -> bool:
        return self._paging_enabled

    @property
    def limit(self) -> int | None:
        return self._limit

    @property
    def group_key(self) -> str | None:
        return self._group_key

    @property
    def distinct(self) -> bool:
        return self._distinct

    @property
    def tracking_mode(self) -> TrackingMode:
        return self._tracking_mode

    @property
    def ignores_store_filters(self) -> bool:
        return self._ignore_store_filters

    @property
    def split_fetch(self) -> bool:
        return self._split_fetch

    @property
    def tag(self) -> str | None:
        return self._tag

    @property
    def search_term(self) -> str | None:
        return self._search_term

    @property
    def search_fields(self) -> tuple[str, ...]:
        return self._search_fields

    @property
    def selector(self) -> Projection | None:
        return self._selector

    # -- criteria ------------------------------------------------------------

    def add_criteria(self, criteria: ISpecification[T]) -> QuerySpecification[T]:
        """AND an extra predicate onto the core predicate."""
        if isinstance(criteria, QuerySpecification):
            raise InvalidSpecificationError(
                "add_criteria() takes a predicate; "
                "pass other.to_expression() to reuse a query specification"
            )
        if not (hasattr(criteria, "to_dict") and hasattr(criteria, "is_satisfied_by")):
            raise InvalidSpecificationError(
                f"Not a specification: {type(criteria).__name__}"
            )
        self._additional_criteria.append(criteria)
        return self

    def apply_search(self, term: str | None, *fields: Any) -> QuerySpecification[T]:
        """
        Case-insensitive containment search of *term* over *fields*.

        A blank term leaves the specification unchanged.
        """
        if not fields:
            raise InvalidSpecificationError("apply_search() needs at least one field")
        paths = tuple(key_path(f) for f in fields)
        if term is None or not term.strip():
            return self
        self._search_term = term
        self._search_fields = paths
        return self

    # -- includes ------------------------------------------------------------

    def add_include(self, path: Any) -> QuerySpecification[T]:
        """Eager-load a relation (``"customer"`` or ``"customer.address"``)."""
        normalised = key_path(path)
        self._check_include_path(normalised)
        self._includes.append(normalised)
        return self

    def include(self, path: Any) -> IncludeBuilder[T]:
        """Start an eager-load chain; continue it with ``then_include``."""
        node = self._new_node(path, parent=None)
        self._include_chains.append(node)
        return IncludeBuilder(self, node)

    def add_include_string(self, path: str) -> QuerySpecification[T]:
        """Eager-load a dotted path given as text."""
        if not isinstance(path, str):
            raise InvalidSpecificationError("add_include_string() takes a string path")
        normalised = key_path(path)
        self._check_include_path(normalised)
        self._include_strings.append(normalised)
        return self

    def _new_node(self, path: Any, *, parent: IncludeNode | None) -> IncludeNode:
        name = key_path(path)
        if "." in name:
            raise InvalidSpecificationError(
                f"Chain links name one relation, got {name!r}; "
                f"use then_include() or add_include_string()"
            )
        node = IncludeNode(path=name, parent=parent)
        owner = self.entity_type if parent is None else parent.target_type
        if owner is not None:
            descriptor, target = resolve_link(
                self._catalog, owner, name, node.full_path
            )
            node.owner_type = owner
            node.target_type = target
            node.return_type = descriptor.return_type
            node.is_collection_link = descriptor.is_collection
        return node

    def _check_include_path(self, path: str) -> None:
        if self.entity_type is None:
            return
        owner: type[Any] = self.entity_type
        walked: list[str] = []
        for part in path.split("."):
            walked.append(part)
            _, owner = resolve_link(self._catalog, owner, part, ".".join(walked))

    # -- ordering ------------------------------------------------------------

    def order_by(self, key: Any) -> QuerySpecification[T]:
        self._orderings.append(Ordering(key_path(key), descending=False))
        return self

    def order_by_descending(self, key: Any) -> QuerySpecification[T]:
        self._orderings.append(Ordering(key_path(key), descending=True))
        return self

    def then_by(self, key: Any) -> QuerySpecification[T]:
        self._require_primary_ordering()
        return self.order_by(key)

    def then_by_descending(self, key: Any) -> QuerySpecification[T]:
        self._require_primary_ordering()
        return self.order_by_descending(key)

    def _require_primary_ordering(self) -> None:
        if not self._orderings:
            raise InvalidSpecificationError("then_by() requires a prior order_by()")

    # -- paging --------------------------------------------------------------

    def apply_paging_by_index(
        self, page_index: int, page_size: int
    ) -> QuerySpecification[T]:
        """Zero-based page *page_index* of *page_size* rows."""
        if page_index < 0:
            raise InvalidSpecificationError("page_index must be >= 0")
        if page_size <= 0:
            raise InvalidSpecificationError("page_size must be > 0")
        return self.apply_paging_by_skip_and_take(page_index * page_size, page_size)

    def apply_paging_by_skip_and_take(
        self, skip: int, take: int
    ) -> QuerySpecification[T]:
        if skip < 0:
            raise InvalidSpecificationError("skip must be >= 0")
        if take <= 0:
            raise InvalidSpecificationError("take must be > 0")
        if self._limit is not None:
            raise InvalidSpecificationError("Paging and limit are mutually exclusive")
        self._skip = skip
        self._take = take
        self._paging_enabled = True
        return self

    def apply_limit(self, count: int) -> QuerySpecification[T]:
        """Cap the number of results without paging."""
        if count <= 0:
            raise InvalidSpecificationError("limit must be > 0")
        if self._paging_enabled:
            raise InvalidSpecificationError("Paging and limit are mutually exclusive")
        self._limit = count
        return self

    # -- shaping -------------------------------------------------------------

    def group_by(self, key: Any) -> QuerySpecification[T]:
        self._group_key = key_path(key)
        return self

    def apply_distinct(self) -> QuerySpecification[T]:
        self._distinct = True
        return self

    def apply_selector(
        self, result_type: type[Any], **fields: Any
    ) -> QuerySpecification[T]:
        """
        Project results onto *result_type*.

        Keyword arguments map result fields to entity paths; without them
        every declared field of *result_type* maps to the same-named path.
        """
        if not isinstance(result_type, type):
            raise InvalidSpecificationError("apply_selector() needs a result type")
        if fields:
            mapping = {name: key_path(path) for name, path in fields.items()}
        else:
            mapping = {
                name: name for name in self._catalog.describe(result_type).field_names
            }
        if not mapping:
            raise InvalidSpecificationError(
                f"{result_type.__name__} declares no fields to project"
            )
        self._selector = Projection(result_type=result_type, fields=mapping)
        return self

    # -- execution hints -----------------------------------------------------

    def as_tracking(self) -> QuerySpecification[T]:
        self._tracking_mode = TrackingMode.TRACK
        return self

    def as_no_tracking(self) -> QuerySpecification[T]:
        self._tracking_mode = TrackingMode.NO_TRACK
        return self

    def as_no_tracking_with_identity_resolution(self) -> QuerySpecification[T]:
        self._tracking_mode = TrackingMode.NO_TRACK_IDENTITY_RESOLUTION
        return self

    def ignore_query_filters(self) -> QuerySpecification[T]:
        """Bypass the store's global filters (soft delete, tenancy, ...)."""
        self._ignore_store_filters = True
        return self

    def as_split_fetch(self) -> QuerySpecification[T]:
        """Load collection includes with separate queries."""
        self._split_fetch = True
        return self

    def tag_with(self, tag: str) -> QuerySpecification[T]:
        if not isinstance(tag, str) or not tag.strip():
            raise InvalidSpecificationError("tag must be a non-empty string")
        self._tag = tag.strip()
        return self

    def __repr__(self) -> str:
        entity = getattr(self.entity_type, "__name__", None)
        return (
            f"{type(self).__name__}(entity={entity}, "
            f"orderings={len(self._orderings)}, paging={self._paging_enabled}, "
            f"includes={len(self._includes) + len(self._include_chains)})"
        )
