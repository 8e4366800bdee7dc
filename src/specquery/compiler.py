"""
Query-plan assembly.

:class:`QueryCompiler` applies a :class:`QuerySpecification` to an
:class:`IQueryable` in a fixed order:

 1. tracking mode
 2. ignore store filters
 3. tag
 4. split-fetch hint
 5. core predicate
 6. additional criteria
 7. search predicate
 8. simple includes
 9. include chains
10. string includes
11. group key
12. distinct
13. orderings (first ``order_by``, the rest ``then_by``)
14. ``skip``/``take`` when paging is enabled, otherwise ``take(limit)``

Steps that are not configured are skipped.  Compilation is synchronous
and never touches the store; the specification is only read.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from .ast import AttributeSpecification
from .base import all_of, any_of, is_constant
from .exceptions import FieldNotFoundError, InvalidSpecificationError
from .includes import IncludePlanner
from .metadata import EntityCatalog
from .operators import SpecificationOperator
from .operators_memory import build_default_registry
from .specification import TrackingMode

if TYPE_CHECKING:
    from .evaluator import MemoryOperatorRegistry
    from .includes import IncludeStrategyRegistry
    from .ports import IQueryable, ISpecification
    from .specification import QuerySpecification

logger = logging.getLogger("specquery.compiler")

T = TypeVar("T")


class QueryCompiler:
    """Assembles executable queries from query specifications."""

    def __init__(
        self,
        catalog: EntityCatalog | None = None,
        strategies: IncludeStrategyRegistry | None = None,
        *,
        registry: MemoryOperatorRegistry | None = None,
    ) -> None:
        self._catalog = catalog or EntityCatalog.default()
        self._planner = IncludePlanner(self._catalog, strategies)
        self._registry = registry if registry is not None else build_default_registry()

    @property
    def catalog(self) -> EntityCatalog:
        return self._catalog

    @property
    def registry(self) -> MemoryOperatorRegistry:
        return self._registry

    # -- public API ----------------------------------------------------------

    def compile_query(
        self, spec: QuerySpecification[T], source: IQueryable[T]
    ) -> IQueryable[T]:
        """
        Apply every configured part of *spec* to *source*.

        Raises:
            FieldNotFoundError: A key path does not resolve on the entity.
            IncludeChainError: An include chain cannot be resolved.
        """
        applied: list[str] = []
        query = self._shape(spec, source, applied)
        entity_type = source.entity_type

        for index, ordering in enumerate(spec.orderings):
            key = self.canonical_key(entity_type, ordering.key)
            if index == 0:
                query = query.order_by(key, descending=ordering.descending)
            else:
                query = query.then_by(key, descending=ordering.descending)
        if spec.orderings:
            applied.append("orderings")

        if spec.paging_enabled and spec.skip is not None and spec.take is not None:
            query = query.skip(spec.skip).take(spec.take)
            applied.append("paging")
        elif spec.limit is not None:
            query = query.take(spec.limit)
            applied.append("limit")

        logger.debug(
            "Compiled %s for %s: %s",
            type(spec).__name__,
            entity_type.__name__,
            ", ".join(applied) or "no steps",
        )
        return query

    def compile_query_without_paging(
        self, spec: QuerySpecification[T], source: IQueryable[T]
    ) -> IQueryable[T]:
        """Like :meth:`compile_query` without ordering or paging; for counts."""
        applied: list[str] = []
        query = self._shape(spec, source, applied)
        logger.debug(
            "Compiled %s for %s without paging: %s",
            type(spec).__name__,
            source.entity_type.__name__,
            ", ".join(applied) or "no steps",
        )
        return query

    def canonical_key(self, entity_type: type[Any], key: str) -> str:
        """
        Validate a developer-supplied key path and return its declared
        spelling.

        Raises:
            FieldNotFoundError: On an unknown segment, a path through a
                collection, or a path ending on a relation.
        """
        owner: type[Any] = entity_type
        names: list[str] = []
        parts = key.split(".")
        for index, part in enumerate(parts):
            descriptor = self._catalog.describe(owner)
            found = descriptor.get(part)
            is_last = index == len(parts) - 1
            if (
                found is None
                or found.is_collection
                or (is_last and found.is_relation)
                or (not is_last and not found.is_relation)
            ):
                raise FieldNotFoundError(
                    part,
                    owner.__name__,
                    [f.name for f in descriptor.fields.values() if not f.is_collection],
                    full_path=key,
                )
            names.append(found.name)
            if found.relation_target is not None:
                owner = found.relation_target
        return ".".join(names)

    def search_predicate(
        self, entity_type: type[Any], term: str, fields: tuple[str, ...]
    ) -> ISpecification[Any]:
        """OR over *fields* of ``field IS NOT NULL AND field icontains term``."""
        return any_of(
            *(
                all_of(
                    AttributeSpecification(
                        path,
                        SpecificationOperator.IS_NOT_NULL,
                        None,
                        registry=self._registry,
                    ),
                    AttributeSpecification(
                        path,
                        SpecificationOperator.ICONTAINS,
                        term,
                        registry=self._registry,
                    ),
                )
                for path in (self.canonical_key(entity_type, f) for f in fields)
            )
        )

    # -- internals -----------------------------------------------------------

    def _shape(
        self,
        spec: QuerySpecification[T],
        source: IQueryable[T],
        applied: list[str],
    ) -> IQueryable[T]:
        entity_type = source.entity_type
        if spec.entity_type is not None and not issubclass(
            entity_type, spec.entity_type
        ):
            raise InvalidSpecificationError(
                f"{type(spec).__name__} targets {spec.entity_type.__name__}, "
                f"the source yields {entity_type.__name__}"
            )
        query = source

        if spec.tracking_mode is not TrackingMode.TRACK:
            query = query.with_tracking(spec.tracking_mode)
            applied.append(f"tracking={spec.tracking_mode.value}")
        if spec.ignores_store_filters:
            query = query.ignore_store_filters()
            applied.append("ignore_store_filters")
        if spec.tag is not None:
            query = query.with_tag(spec.tag)
            applied.append("tag")
        if spec.split_fetch:
            query = query.with_split_fetch()
            applied.append("split_fetch")

        expression = spec.to_expression()
        if not is_constant(expression, True):
            query = query.where(expression)
            applied.append("where")
        if spec.additional_criteria:
            query = query.where(all_of(*spec.additional_criteria))
            applied.append("additional_criteria")
        if spec.search_term is not None and spec.search_fields:
            query = query.where(
                self.search_predicate(entity_type, spec.search_term, spec.search_fields)
            )
            applied.append("search")

        for path in spec.includes:
            query = query.include(self._planner.plan_path(path, entity_type))
        for chain in self._planner.plan_nodes(spec.include_chains, entity_type):
            query = query.include(chain)
        for path in spec.include_strings:
            query = query.include(self._planner.plan_path(path, entity_type))
        if spec.includes or spec.include_chains or spec.include_strings:
            applied.append("includes")

        if spec.group_key is not None:
            query = query.group_by(self.canonical_key(entity_type, spec.group_key))
            applied.append("group_by")
        if spec.distinct:
            query = query.distinct()
            applied.append("distinct")
        return query
