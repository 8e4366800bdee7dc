from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Generic, TypeVar, cast

from .base import (
    AndSpecification,
    BaseSpecification,
    ConstantSpecification,
    NotSpecification,
    OrSpecification,
)
from .coercion import coerce_named
from .exceptions import OperatorNotFoundError, ValidationError
from .operators import CONSTANT_OPERATORS, LOGICAL_OPERATORS, SpecificationOperator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .evaluator import MemoryOperatorRegistry
    from .ports import ISpecification

T = TypeVar("T", contravariant=True)

_LEAF_OPERATORS: frozenset[str] = frozenset(
    m.value
    for m in SpecificationOperator
    if m not in LOGICAL_OPERATORS and m not in CONSTANT_OPERATORS
)


class _Fanout(list):  # type: ignore[type-arg]
    """Values gathered by traversing a collection along an attribute path."""


def resolve_path(obj: Any, attr_path: str) -> Any:
    """
    Resolve a dot-separated attribute path on *obj*.

    Supports nested attribute access (``customer.name``), mapping keys,
    and implicit list traversal (``items.sku`` where ``items`` is a list
    returns every item's ``sku``).
    """
    for index, part in enumerate(attr_path.split(".")):
        if obj is None:
            return None
        if isinstance(obj, list | tuple | set | frozenset):
            rest = ".".join(attr_path.split(".")[index:])
            out = _Fanout()
            for item in obj:
                value = resolve_path(item, rest)
                if isinstance(value, _Fanout):
                    out.extend(value)
                else:
                    out.append(value)
            return out
        obj = obj.get(part) if isinstance(obj, dict) else getattr(obj, part, None)
    return obj


class AttributeSpecification(BaseSpecification[T]):
    """
    Specification that checks a single attribute value.

    Delegates in-memory evaluation to a :class:`MemoryOperatorRegistry`
    (strategy pattern).  The registry is injected explicitly.  A path
    that crosses a collection matches when *any* element matches, the
    same semantics the SQLAlchemy compiler gives ``relationship.any()``.
    """

    def __init__(
        self,
        attr: str,
        op: SpecificationOperator | str,
        val: Any,
        *,
        registry: MemoryOperatorRegistry,
    ) -> None:
        self.attr = attr
        self.op = SpecificationOperator(op) if isinstance(op, str) else op
        self.val = val
        if registry is None:
            raise ValueError(
                "registry parameter is required. "
                "Use build_default_registry() from operators_memory to create one."
            )
        self._registry = registry

    def is_satisfied_by(self, candidate: T) -> bool:
        actual = resolve_path(candidate, self.attr)
        if isinstance(actual, _Fanout):
            return any(
                self._registry.evaluate(self.op, value, self.val) for value in actual
            )
        return self._registry.evaluate(self.op, actual, self.val)

    def to_dict(self) -> dict[str, Any]:
        val = self.val
        if isinstance(val, set | frozenset | tuple):
            val = list(val)
        return {
            "op": self.op.value,
            "attr": self.attr,
            "val": val,
        }


class SpecificationFactory(Generic[T]):
    """
    Factory for creating specifications from dictionary / JSON representations.

    Supports:
    - ``from_dict(data)``: parse a nested dict tree
    - ``from_json(text)``: parse a JSON string
    - ``validate(data)``: collect errors without constructing
    - ``value_type`` casting for leaves (``"int"``, ``"datetime"``, ...)
    """

    # ------------------------------------------------------------------ #
    # Public API                                                          #
    # ------------------------------------------------------------------ #

    @staticmethod
    def from_dict(
        data: dict[str, Any],
        *,
        allowed_fields: Sequence[str] | None = None,
        registry: MemoryOperatorRegistry,
    ) -> ISpecification[T]:
        """
        Create a specification tree from a dictionary.

        ``allowed_fields`` is an optional whitelist; a leaf naming any
        other attribute raises :class:`ValidationError`.
        """
        SpecificationFactory._validate_node(data, allowed_fields=allowed_fields)
        return SpecificationFactory._build(data, registry=registry)

    @staticmethod
    def from_json(
        text: str,
        *,
        allowed_fields: Sequence[str] | None = None,
        registry: MemoryOperatorRegistry,
    ) -> ISpecification[T]:
        """Parse a JSON string and build a specification tree."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Invalid JSON: {exc}", path="<root>") from exc

        if not isinstance(data, dict):
            raise ValidationError(
                "Top-level JSON value must be an object", path="<root>"
            )

        return SpecificationFactory.from_dict(
            data, allowed_fields=allowed_fields, registry=registry
        )

    @staticmethod
    def validate(
        data: dict[str, Any],
        *,
        allowed_fields: Sequence[str] | None = None,
    ) -> list[str]:
        """Return every validation error message; empty when valid."""
        errors: list[str] = []
        SpecificationFactory._collect_errors(
            data, errors, path="<root>", allowed_fields=allowed_fields
        )
        return errors

    # ------------------------------------------------------------------ #
    # Internal: recursive build                                          #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build(
        data: dict[str, Any],
        *,
        registry: MemoryOperatorRegistry,
    ) -> ISpecification[T]:
        op_str = data.get("op", "").lower()

        if op_str in CONSTANT_OPERATORS:
            return ConstantSpecification(op_str == SpecificationOperator.TRUE)

        if op_str in (SpecificationOperator.AND, SpecificationOperator.OR):
            children = tuple(
                SpecificationFactory._build(c, registry=registry)
                for c in data.get("conditions", [])
            )
            specs = cast("tuple[ISpecification[T], ...]", children)
            if op_str == SpecificationOperator.AND:
                return AndSpecification(*specs)
            return OrSpecification(*specs)

        if op_str == SpecificationOperator.NOT:
            conditions = data.get("conditions") or [data["condition"]]
            return NotSpecification(
                SpecificationFactory._build(conditions[0], registry=registry)
            )

        val = data.get("val")
        value_type = data.get("value_type")
        if value_type is not None:
            val = coerce_named(val, value_type)

        return AttributeSpecification(data["attr"], op_str, val, registry=registry)

    # ------------------------------------------------------------------ #
    # Internal: validation                                               #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_node(
        data: dict[str, Any],
        *,
        path: str = "<root>",
        allowed_fields: Sequence[str] | None = None,
    ) -> None:
        """Raise on first validation error (fail-fast)."""
        if not isinstance(data, dict):
            raise ValidationError(
                f"Expected a dict, got {type(data).__name__}", path=path
            )

        op_str = data.get("op")
        if not op_str or not isinstance(op_str, str):
            raise ValidationError("Missing or empty 'op' key", path=path)

        op_lower = op_str.lower()
        if op_lower in CONSTANT_OPERATORS:
            return

        if op_lower in LOGICAL_OPERATORS:
            conditions = data.get("conditions")
            if conditions is None and "condition" in data:
                conditions = [data["condition"]]
            if not isinstance(conditions, list) or (
                op_lower == SpecificationOperator.NOT and len(conditions) != 1
            ):
                raise ValidationError(
                    f"Logical operator '{op_str}' requires a 'conditions' list",
                    path=path,
                )
            for idx, child in enumerate(conditions):
                SpecificationFactory._validate_node(
                    child,
                    path=f"{path}.conditions[{idx}]",
                    allowed_fields=allowed_fields,
                )
            return

        if op_lower not in _LEAF_OPERATORS:
            raise OperatorNotFoundError(op_lower, sorted(_LEAF_OPERATORS))

        attr = data.get("attr")
        if not attr or not isinstance(attr, str):
            raise ValidationError(
                f"Leaf specification missing 'attr': {data}", path=path
            )

        if allowed_fields is not None and attr not in allowed_fields:
            raise ValidationError(
                f"Field '{attr}' is not in the allowed fields list", path=path
            )

    @staticmethod
    def _collect_errors(
        data: Any,
        errors: list[str],
        *,
        path: str,
        allowed_fields: Sequence[str] | None = None,
    ) -> None:
        """Recursive error collection (non-throwing)."""
        if not isinstance(data, dict):
            errors.append(f"{path}: expected dict, got {type(data).__name__}")
            return

        op_str = data.get("op")
        if not op_str or not isinstance(op_str, str):
            errors.append(f"{path}: missing or empty 'op' key")
            return

        op_lower = op_str.lower()
        if op_lower in CONSTANT_OPERATORS:
            return

        if op_lower in LOGICAL_OPERATORS:
            conditions = data.get("conditions")
            if conditions is None and "condition" in data:
                conditions = [data["condition"]]
            if not isinstance(conditions, list):
                errors.append(f"{path}: logical '{op_str}' requires 'conditions'")
                return
            for idx, child in enumerate(conditions):
                SpecificationFactory._collect_errors(
                    child,
                    errors,
                    path=f"{path}.conditions[{idx}]",
                    allowed_fields=allowed_fields,
                )
            return

        if op_lower not in _LEAF_OPERATORS:
            errors.append(f"{path}: unknown operator '{op_lower}'")

        attr = data.get("attr")
        if not attr or not isinstance(attr, str):
            errors.append(f"{path}: missing 'attr'")
            return

        if allowed_fields is not None and attr not in allowed_fields:
            errors.append(f"{path}: field '{attr}' not allowed")
