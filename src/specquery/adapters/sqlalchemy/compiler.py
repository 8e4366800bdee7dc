"""
Compile a specification dictionary (AST) into a SQLAlchemy filter expression.

Uses the strategy pattern: each operator is an isolated class in
``operators/``, registered in a ``SQLAlchemyOperatorRegistry``.
``build_sqla_filter`` walks the tree produced by ``spec.to_dict()`` and
delegates leaf compilation to the registry.  Dotted attributes traverse
relationships with ``.has()`` (references) or ``.any()`` (collections).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, false, not_, or_, true
from sqlalchemy import inspect as sa_inspect

from ...exceptions import FieldNotFoundError, OperatorNotFoundError, ValidationError
from ...operators import SpecificationOperator
from .operators import DEFAULT_SQLA_REGISTRY

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from .strategy import SQLAlchemyOperatorRegistry

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_sqla_filter(
    model: type[Any],
    data: dict[str, Any],
    *,
    registry: SQLAlchemyOperatorRegistry | None = None,
) -> ColumnElement[bool]:
    """
    Build a SQLAlchemy filter expression from a specification dictionary.

    Args:
        model: The SQLAlchemy mapped class.
        data: Specification dictionary (JSON AST produced by ``spec.to_dict()``).
        registry: Optional custom operator registry.  Falls back to
            ``DEFAULT_SQLA_REGISTRY``.

    Raises:
        FieldNotFoundError: An attribute is not mapped on the model.
        OperatorNotFoundError: A leaf operator is not registered.
    """
    reg = registry or DEFAULT_SQLA_REGISTRY
    return _compile_node(model, data, reg)


def mapped_attribute(
    model: type[Any], name: str, *, full_path: str | None = None
) -> Any:
    """
    Return the instrumented attribute *name* of *model*.

    Only mapped columns and relationships qualify; methods, properties
    and other class attributes are rejected.
    """
    mapper = sa_inspect(model)
    if name not in mapper.attrs:
        raise FieldNotFoundError(
            name,
            model.__name__,
            list(mapper.attrs.keys()),
            full_path=full_path,
        )
    return getattr(model, name)


# ---------------------------------------------------------------------------
# Internal compilation
# ---------------------------------------------------------------------------


def _compile_logical_operator(
    model: type[Any],
    data: dict[str, Any],
    registry: SQLAlchemyOperatorRegistry,
    op_str: str,
) -> ColumnElement[bool] | None:
    """Compile constants and logical operators; ``None`` for leaves."""
    if op_str == SpecificationOperator.TRUE:
        return true()
    if op_str == SpecificationOperator.FALSE:
        return false()

    if op_str == SpecificationOperator.AND:
        conditions = [
            _compile_node(model, c, registry) for c in data.get("conditions", [])
        ]
        return and_(*conditions) if conditions else true()

    if op_str == SpecificationOperator.OR:
        conditions = [
            _compile_node(model, c, registry) for c in data.get("conditions", [])
        ]
        return or_(*conditions) if conditions else false()

    if op_str == SpecificationOperator.NOT:
        conditions = data.get("conditions") or [data.get("condition")]
        if len(conditions) != 1 or conditions[0] is None:
            raise ValidationError("'not' requires exactly one condition", path="not")
        return not_(_compile_node(model, conditions[0], registry))

    return None


def _compile_leaf_node(
    model: type[Any],
    data: dict[str, Any],
    registry: SQLAlchemyOperatorRegistry,
    op_str: str,
    full_path: str | None = None,
) -> ColumnElement[bool]:
    """Compile leaf node (attribute-based conditions)."""
    attr: str | None = data.get("attr")
    val = data.get("val")

    if not attr:
        raise ValidationError(f"Specification missing 'attr': {data}", path=full_path)
    full_path = full_path or attr

    # Relationship traversal (e.g. "customer.name", "items.sku")
    if "." in attr:
        rel_name, nested_attr = attr.split(".", 1)
        rel_attr = mapped_attribute(model, rel_name, full_path=full_path)
        prop = getattr(rel_attr, "property", None)
        if not hasattr(prop, "mapper"):
            raise FieldNotFoundError(
                rel_name,
                model.__name__,
                list(sa_inspect(model).relationships.keys()),
                full_path=full_path,
            )

        target_model = prop.mapper.class_
        nested_data = {"op": op_str, "attr": nested_attr, "val": val}
        inner_expr = _compile_leaf_node(
            target_model, nested_data, registry, op_str, full_path
        )

        if prop.uselist:
            return cast("ColumnElement[bool]", rel_attr.any(inner_expr))
        return cast("ColumnElement[bool]", rel_attr.has(inner_expr))

    column = mapped_attribute(model, attr, full_path=full_path)
    try:
        operator = SpecificationOperator(op_str)
    except ValueError:
        raise OperatorNotFoundError(
            op_str, [m.value for m in registry.supported_operators]
        ) from None
    return registry.apply(operator, column, val)


def _compile_node(
    model: type[Any],
    data: dict[str, Any],
    registry: SQLAlchemyOperatorRegistry,
) -> ColumnElement[bool]:
    op_str = data.get("op", "").lower()

    logical_result = _compile_logical_operator(model, data, registry, op_str)
    if logical_result is not None:
        return logical_result

    return _compile_leaf_node(model, data, registry, op_str)
