from __future__ import annotations

from typing import Any

import pytest
from sample_domain import Order, Product

from specquery import (
    AttributeSpecification,
    FieldNotFoundError,
    IncludeChainError,
    InvalidSpecificationError,
    QueryCompiler,
    QuerySpecification,
    TrackingMode,
)


class RecordingQueryable:
    """Queryable double that records every call instead of running it."""

    def __init__(
        self, entity_type: type[Any], calls: list[tuple[Any, ...]] | None = None
    ) -> None:
        self._entity_type = entity_type
        self.calls = calls if calls is not None else []

    @property
    def entity_type(self) -> type[Any]:
        return self._entity_type

    def _record(self, *call: Any) -> RecordingQueryable:
        return RecordingQueryable(self._entity_type, [*self.calls, call])

    def with_tracking(self, mode):
        return self._record("with_tracking", mode)

    def ignore_store_filters(self):
        return self._record("ignore_store_filters")

    def with_tag(self, tag):
        return self._record("with_tag", tag)

    def with_split_fetch(self):
        return self._record("with_split_fetch")

    def where(self, specification):
        return self._record("where", specification.to_dict())

    def include(self, steps):
        return self._record("include", tuple(s.name for s in steps))

    def group_by(self, key):
        return self._record("group_by", key)

    def distinct(self):
        return self._record("distinct")

    def order_by(self, key, *, descending=False):
        return self._record("order_by", key, descending)

    def then_by(self, key, *, descending=False):
        return self._record("then_by", key, descending)

    def skip(self, count):
        return self._record("skip", count)

    def take(self, count):
        return self._record("take", count)


@pytest.fixture
def compiler(catalog, registry) -> QueryCompiler:
    return QueryCompiler(catalog, registry=registry)


def _names(query: RecordingQueryable) -> list[Any]:
    return [call[0] for call in query.calls]


def test_empty_specification_adds_nothing(compiler: QueryCompiler) -> None:
    source = RecordingQueryable(Product)
    query = compiler.compile_query(QuerySpecification(entity_type=Product), source)
    assert query.calls == []


def test_fixed_step_order(compiler: QueryCompiler, registry) -> None:
    spec = QuerySpecification(
        AttributeSpecification("customer.name", "=", "Alice", registry=registry),
        entity_type=Order,
    )
    spec.apply_paging_by_index(1, 10)
    spec.order_by_descending("placed_at").then_by("number")
    spec.apply_distinct()
    spec.group_by("customer.name")
    spec.add_include_string("items.product")
    spec.include("items").then_include("product").then_include("category")
    spec.add_include("customer")
    spec.apply_search("SO-", "number", "notes")
    spec.add_criteria(AttributeSpecification("number", "!=", "x", registry=registry))
    spec.as_split_fetch()
    spec.tag_with("orders")
    spec.ignore_query_filters()
    spec.as_no_tracking()

    query = compiler.compile_query(spec, RecordingQueryable(Order))

    assert _names(query) == [
        "with_tracking",
        "ignore_store_filters",
        "with_tag",
        "with_split_fetch",
        "where",
        "where",
        "where",
        "include",
        "include",
        "include",
        "group_by",
        "distinct",
        "order_by",
        "then_by",
        "skip",
        "take",
    ]
    assert query.calls[0] == ("with_tracking", TrackingMode.NO_TRACK)
    assert [c[1] for c in query.calls if c[0] == "include"] == [
        ("customer",),
        ("items", "product", "category"),
        ("items", "product"),
    ]
    assert query.calls[-4:] == [
        ("order_by", "placed_at", True),
        ("then_by", "number", False),
        ("skip", 10),
        ("take", 10),
    ]


def test_search_predicate_is_null_safe(compiler: QueryCompiler) -> None:
    spec = QuerySpecification(entity_type=Order).apply_search("gift", "Notes")
    query = compiler.compile_query(spec, RecordingQueryable(Order))
    ((_, tree),) = query.calls
    assert tree == {
        "op": "and",
        "conditions": [
            {"op": "is_not_null", "attr": "notes", "val": None},
            {"op": "icontains", "attr": "notes", "val": "gift"},
        ],
    }


def test_limit_without_paging(compiler: QueryCompiler) -> None:
    spec = QuerySpecification(entity_type=Product).order_by("name").apply_limit(3)
    query = compiler.compile_query(spec, RecordingQueryable(Product))
    assert query.calls == [("order_by", "name", False), ("take", 3)]


def test_without_paging_skips_ordering_and_window(compiler: QueryCompiler) -> None:
    spec = (
        QuerySpecification(entity_type=Product)
        .order_by("name")
        .apply_paging_by_index(0, 5)
        .apply_distinct()
    )
    query = compiler.compile_query_without_paging(spec, RecordingQueryable(Product))
    assert _names(query) == ["distinct"]


def test_keys_are_canonicalised(compiler: QueryCompiler) -> None:
    spec = QuerySpecification(entity_type=Order).order_by("Customer.Name")
    query = compiler.compile_query(spec, RecordingQueryable(Order))
    assert query.calls == [("order_by", "customer.name", False)]


@pytest.mark.parametrize(
    "key", ["missing", "items.quantity", "customer", "number.length", "customer.nmae"]
)
def test_bad_keys_raise(compiler: QueryCompiler, key: str) -> None:
    spec = QuerySpecification(entity_type=Order).order_by(key)
    with pytest.raises(FieldNotFoundError):
        compiler.compile_query(spec, RecordingQueryable(Order))


def test_bad_group_key_and_search_field_raise(compiler: QueryCompiler) -> None:
    with pytest.raises(FieldNotFoundError) as exc_info:
        compiler.compile_query(
            QuerySpecification(entity_type=Order).group_by("custmer"),
            RecordingQueryable(Order),
        )
    assert "customer" in exc_info.value.suggestions

    with pytest.raises(FieldNotFoundError):
        compiler.compile_query(
            QuerySpecification(entity_type=Order).apply_search("x", "nope"),
            RecordingQueryable(Order),
        )


def test_deferred_include_fails_at_compile_time(compiler: QueryCompiler) -> None:
    spec: QuerySpecification[Order] = QuerySpecification()
    spec.add_include("customer.orders")
    with pytest.raises(IncludeChainError):
        compiler.compile_query(spec, RecordingQueryable(Order))


def test_entity_type_mismatch(compiler: QueryCompiler) -> None:
    with pytest.raises(InvalidSpecificationError):
        compiler.compile_query(
            QuerySpecification(entity_type=Order), RecordingQueryable(Product)
        )


def test_specification_is_not_mutated(compiler: QueryCompiler) -> None:
    spec = QuerySpecification(entity_type=Product).order_by("name").apply_limit(2)
    compiler.compile_query(spec, RecordingQueryable(Product))
    compiler.compile_query(spec, RecordingQueryable(Product))
    assert len(spec.orderings) == 1
    assert spec.limit == 2
