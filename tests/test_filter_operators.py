from __future__ import annotations

import pytest
from sample_domain import Product

from specquery import FilterItem, FilterOperator, OperatorNotFoundError
from specquery.filtering import FilterCompiler, resolve_filter_operator

ALIASES = [
    ("eq", FilterOperator.EQUALS),
    ("==", FilterOperator.EQUALS),
    ("Equals", FilterOperator.EQUALS),
    ("<>", FilterOperator.NOT_EQUALS),
    ("neq", FilterOperator.NOT_EQUALS),
    ("like", FilterOperator.CONTAINS),
    ("sw", FilterOperator.STARTS_WITH),
    ("beginsWith", FilterOperator.STARTS_WITH),
    ("ew", FilterOperator.ENDS_WITH),
    ("gte", FilterOperator.GREATER_THAN_OR_EQUAL),
    ("greater-than-or-equal", FilterOperator.GREATER_THAN_OR_EQUAL),
    ("GreaterThanOrEqual", FilterOperator.GREATER_THAN_OR_EQUAL),
    ("lt", FilterOperator.LESS_THAN),
    ("<=", FilterOperator.LESS_THAN_OR_EQUAL),
    ("null", FilterOperator.IS_NULL),
    ("IsNotNull", FilterOperator.IS_NOT_NULL),
    ("not empty", FilterOperator.IS_NOT_EMPTY),
    ("oneOf", FilterOperator.IN),
    ("nin", FilterOperator.NOT_IN),
]


@pytest.mark.parametrize(("alias", "expected"), ALIASES)
def test_alias_resolves_to_canonical(alias: str, expected: FilterOperator) -> None:
    assert resolve_filter_operator(alias) is expected


def test_alias_compiles_like_canonical(filter_compiler: FilterCompiler) -> None:
    via_alias = filter_compiler.compile_item(
        FilterItem(field="price", operator="gte", value="100"), Product
    )
    canonical = filter_compiler.compile_item(
        FilterItem(field="price", operator="greater_than_or_equal", value="100"),
        Product,
    )
    assert via_alias.to_dict() == canonical.to_dict()
    assert via_alias.to_dict() == {"op": ">=", "attr": "price", "val": 100}


def test_unknown_operator_raises_with_suggestions(
    filter_compiler: FilterCompiler,
) -> None:
    with pytest.raises(OperatorNotFoundError) as exc_info:
        filter_compiler.compile_item(
            FilterItem(field="price", operator="containz", value="1"), Product
        )
    assert "contains" in exc_info.value.suggestions


def test_operator_properties() -> None:
    assert FilterOperator.IS_NULL.takes_value is False
    assert FilterOperator.EQUALS.takes_value is True
    assert FilterOperator.ENDS_WITH.is_text is True
    assert FilterOperator.NOT_IN.is_set is True
