"""
Compile a :class:`FilterModel` into a specification tree.

End-user input is untrusted, so every fault in the *data* (unknown
field, bad field syntax, path through a collection, unparsable value in
strict mode, oversized payload) compiles to a predicate that matches
nothing instead of raising.  Only an unknown operator raises, because
operator strings come from client code rather than from end users.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..ast import AttributeSpecification
from ..base import all_of, any_of, match_all, match_none
from ..coercion import (
    coerce_text,
    default_for,
    has_conversion_rule,
    is_text_type,
    parse_list_value,
)
from ..metadata import EntityCatalog
from ..operators import SpecificationOperator
from ..operators_memory import build_default_registry
from ..specification import Ordering
from .model import FilterLogic
from .operators import (
    FilterOperator,
    resolve_filter_operator,
    to_specification_operator,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..evaluator import MemoryOperatorRegistry
    from ..metadata import FieldDescriptor
    from ..ports import ISpecification
    from .model import FilterItem, FilterModel, SortItem

logger = logging.getLogger("specquery.filtering")

_FIELD_RE = re.compile(r"^[A-Za-z][A-Za-z0-9.]*$")

_UNPARSED = object()


@dataclass(frozen=True)
class FilterCompilerOptions:
    """
    Limits and coercion policy for :class:`FilterCompiler`.

    ``strict_values`` turns an unparsable value into a non-matching item
    instead of substituting the target type's default.
    """

    max_field_length: int = 256
    max_filter_items: int = 100
    strict_values: bool = False


class FilterCompiler:
    """
    Turns Filter Model payloads into composable specifications.

    Example::

        compiler = FilterCompiler()
        model = FilterModel.model_validate(
            {"items": [{"field": "price", "operator": "gte", "value": "100"}]}
        )
        spec = compiler.compile(model, Product)
    """

    def __init__(
        self,
        *,
        catalog: EntityCatalog | None = None,
        registry: MemoryOperatorRegistry | None = None,
        options: FilterCompilerOptions | None = None,
    ) -> None:
        self._catalog = catalog or EntityCatalog.default()
        self._registry = registry if registry is not None else build_default_registry()
        self._options = options or FilterCompilerOptions()

    @property
    def options(self) -> FilterCompilerOptions:
        return self._options

    # -- public API ----------------------------------------------------------

    def compile(
        self, model: FilterModel, entity_type: type[Any]
    ) -> ISpecification[Any]:
        """
        Compile the whole model: search, top-level items, then groups.

        An empty model is the identity predicate.
        """
        if model.item_count > self._options.max_filter_items:
            logger.warning(
                "Filter payload for %s has %d items (limit %d); matching nothing",
                entity_type.__name__,
                model.item_count,
                self._options.max_filter_items,
            )
            return match_none()

        parts: list[ISpecification[Any]] = []
        if model.search_term is not None:
            parts.append(self.compile_search(model.search_term, entity_type))
        parts.extend(self.compile_item(item, entity_type) for item in model.items)
        for group in model.groups:
            if not group.items:
                continue
            members = [self.compile_item(item, entity_type) for item in group.items]
            if group.logic is FilterLogic.OR:
                parts.append(any_of(*members))
            else:
                parts.append(all_of(*members))
        return all_of(*parts)

    def compile_item(
        self, item: FilterItem, entity_type: type[Any]
    ) -> ISpecification[Any]:
        """
        Compile one ``field operator value`` triple.

        Raises:
            OperatorNotFoundError: When the operator is neither a canonical
                name nor a known alias.
        """
        operator = resolve_filter_operator(item.operator)

        chain = self._resolve_field(item.field, entity_type)
        if chain is None:
            return match_none()
        leaf = chain[-1]
        path = ".".join(d.name for d in chain)
        nullable = any(d.nullable for d in chain)
        text_field = is_text_type(leaf.python_type)

        if operator is FilterOperator.IS_NULL:
            return self._leaf(path, operator, None) if nullable else match_none()
        if operator is FilterOperator.IS_NOT_NULL:
            return self._leaf(path, operator, None) if nullable else match_all()
        if operator in (FilterOperator.IS_EMPTY, FilterOperator.IS_NOT_EMPTY):
            return self._leaf(path, operator, None) if text_field else match_none()
        if operator.is_text and not text_field:
            logger.debug("Text operator %s on non-text field %s", operator.value, path)
            return match_none()
        if not has_conversion_rule(leaf.python_type):
            logger.debug("No conversion rule for %s (%r)", path, leaf.python_type)
            return match_none()

        if operator.is_set:
            return self._compile_set(path, operator, item.value, leaf, nullable)

        if item.value is None:
            if operator is FilterOperator.EQUALS:
                if not nullable:
                    return match_none()
                return self._leaf(path, FilterOperator.IS_NULL, None)
            if operator is FilterOperator.NOT_EQUALS:
                if not nullable:
                    return match_all()
                return self._leaf(path, FilterOperator.IS_NOT_NULL, None)
            logger.debug("Operator %s on %s needs a value", operator.value, path)
            return match_none()

        value = self._coerce(item.value, leaf, nullable, path)
        if value is _UNPARSED:
            return match_none()
        return self._leaf(path, operator, value)

    def compile_search(
        self, term: str | None, entity_type: type[Any]
    ) -> ISpecification[Any]:
        """
        Case-insensitive, null-safe containment over every top-level
        string field.  A blank term, or an entity without string fields,
        imposes no constraint.
        """
        if term is None or not term.strip():
            return match_all()
        fields = self._catalog.describe(entity_type).string_fields
        if not fields:
            return match_all()
        return any_of(
            *(
                all_of(
                    self._spec(d.name, SpecificationOperator.IS_NOT_NULL, None),
                    self._spec(d.name, SpecificationOperator.ICONTAINS, term),
                )
                for d in fields
            )
        )

    def compile_sorts(
        self, sorts: Sequence[SortItem], entity_type: type[Any]
    ) -> list[Ordering]:
        """Resolve sort fields; invalid or unknown ones are skipped."""
        orderings: list[Ordering] = []
        for sort in sorts:
            chain = self._resolve_field(sort.field, entity_type)
            if chain is None:
                continue
            orderings.append(
                Ordering(".".join(d.name for d in chain), descending=sort.descending)
            )
        return orderings

    # -- internals -----------------------------------------------------------

    def _resolve_field(
        self, name: str, entity_type: type[Any]
    ) -> list[FieldDescriptor] | None:
        if len(name) > self._options.max_field_length or not _FIELD_RE.match(name):
            logger.debug("Rejected field name %.64r", name)
            return None
        chain = self._catalog.resolve(entity_type, name)
        if chain is None:
            logger.debug("Unknown field %r on %s", name, entity_type.__name__)
            return None
        if any(d.is_collection for d in chain):
            logger.debug("Field %r crosses a collection", name)
            return None
        if chain[-1].is_relation:
            logger.debug("Field %r ends on a relation", name)
            return None
        return chain

    def _compile_set(
        self,
        path: str,
        operator: FilterOperator,
        raw: str | None,
        leaf: FieldDescriptor,
        nullable: bool,
    ) -> ISpecification[Any]:
        tokens = parse_list_value(raw)
        values: list[Any] = []
        for token in tokens:
            value = self._coerce(token, leaf, nullable, path)
            if value is _UNPARSED:
                return match_none()
            values.append(value)
        if not values:
            return match_none() if operator is FilterOperator.IN else match_all()
        return self._leaf(path, operator, values)

    def _coerce(
        self, text: str, leaf: FieldDescriptor, nullable: bool, path: str
    ) -> Any:
        try:
            return coerce_text(text, leaf.python_type)
        except (TypeError, ValueError):
            if self._options.strict_values:
                logger.debug("Unparsable value %.64r for %s", text, path)
                return _UNPARSED
            fallback = default_for(leaf.python_type, nullable=nullable)
            logger.warning(
                "Unparsable value %.64r for %s; using default %r", text, path, fallback
            )
            return fallback

    def _leaf(
        self, path: str, operator: FilterOperator, value: Any
    ) -> ISpecification[Any]:
        return self._spec(path, to_specification_operator(operator), value)

    def _spec(
        self, path: str, operator: SpecificationOperator, value: Any
    ) -> ISpecification[Any]:
        return AttributeSpecification(path, operator, value, registry=self._registry)
