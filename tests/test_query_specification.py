from __future__ import annotations

import pytest
from sample_domain import Order, OrderItem, Product, ProductSummary
from sql_domain import ProductRecord

from specquery import (
    AndSpecification,
    AttributeSpecification,
    IncludeChainError,
    InvalidSpecificationError,
    NotSpecification,
    Ordering,
    QuerySpecification,
    TrackingMode,
    match_all,
)


class FeaturedProducts(QuerySpecification[Product]):
    entity_type = Product

    def __init__(self, registry) -> None:
        super().__init__()
        self._registry = registry

    def to_expression(self):
        return AttributeSpecification("featured", "=", True, registry=self._registry)


def test_defaults() -> None:
    spec: QuerySpecification[Product] = QuerySpecification(entity_type=Product)
    assert spec.to_expression() == match_all()
    assert spec.orderings == ()
    assert spec.paging_enabled is False
    assert spec.skip is None and spec.take is None and spec.limit is None
    assert spec.tracking_mode is TrackingMode.TRACK
    assert spec.ignores_store_filters is False
    assert spec.selector is None


def test_entity_type_is_per_instance() -> None:
    spec: QuerySpecification[Order] = QuerySpecification(entity_type=Order)
    assert spec.entity_type is Order
    assert QuerySpecification.entity_type is None


def test_paging_by_index() -> None:
    spec = QuerySpecification(entity_type=Product).apply_paging_by_index(2, 20)
    assert (spec.skip, spec.take, spec.paging_enabled) == (40, 20, True)


@pytest.mark.parametrize(
    ("skip", "take"), [(-1, 10), (0, 0), (5, -3)]
)
def test_paging_rejects_bad_bounds(skip: int, take: int) -> None:
    with pytest.raises(InvalidSpecificationError):
        QuerySpecification().apply_paging_by_skip_and_take(skip, take)


def test_paging_by_index_rejects_bad_bounds() -> None:
    with pytest.raises(InvalidSpecificationError):
        QuerySpecification().apply_paging_by_index(-1, 10)
    with pytest.raises(InvalidSpecificationError):
        QuerySpecification().apply_paging_by_index(0, 0)


def test_limit_and_paging_are_exclusive() -> None:
    with pytest.raises(InvalidSpecificationError):
        QuerySpecification().apply_limit(5).apply_paging_by_index(0, 10)
    with pytest.raises(InvalidSpecificationError):
        QuerySpecification().apply_paging_by_index(0, 10).apply_limit(5)
    with pytest.raises(InvalidSpecificationError):
        QuerySpecification().apply_limit(0)


def test_orderings_keep_call_order() -> None:
    spec = (
        QuerySpecification(entity_type=Product)
        .order_by_descending("rating")
        .then_by("name")
        .then_by_descending(ProductRecord.price)
    )
    assert spec.orderings == (
        Ordering("rating", descending=True),
        Ordering("name"),
        Ordering("price", descending=True),
    )


def test_then_by_requires_order_by() -> None:
    with pytest.raises(InvalidSpecificationError):
        QuerySpecification().then_by("name")
    with pytest.raises(InvalidSpecificationError):
        QuerySpecification().then_by_descending("name")


@pytest.mark.parametrize("selector", ["", "a..b", "1st", "na me", None, 42])
def test_invalid_key_selectors(selector) -> None:
    with pytest.raises(InvalidSpecificationError):
        QuerySpecification().order_by(selector)


def test_add_criteria_rejects_query_specifications(registry) -> None:
    spec = QuerySpecification(entity_type=Product)
    with pytest.raises(InvalidSpecificationError):
        spec.add_criteria(FeaturedProducts(registry))  # type: ignore[arg-type]
    with pytest.raises(InvalidSpecificationError):
        spec.add_criteria("featured = true")  # type: ignore[arg-type]

    leaf = AttributeSpecification("price", ">", 10, registry=registry)
    assert spec.add_criteria(leaf).additional_criteria == (leaf,)


def test_search() -> None:
    spec = QuerySpecification(entity_type=Product)
    assert spec.apply_search("  ", "name").search_term is None
    spec.apply_search("lamp", "name", ProductRecord.description)
    assert spec.search_term == "lamp"
    assert spec.search_fields == ("name", "description")
    with pytest.raises(InvalidSpecificationError):
        spec.apply_search("lamp")


def test_include_chain_records_types() -> None:
    spec = QuerySpecification(entity_type=Order)
    builder = spec.include("items").then_include("product").then_include("category")
    assert builder.end() is spec

    (root,) = spec.include_chains
    assert root.is_resolved
    assert root.return_type == list[OrderItem]
    product = root.children[0]
    assert product.full_path == "items.product"
    assert product.owner_type is OrderItem
    assert product.is_collection_link is False
    assert product.children[0].full_path == "items.product.category"


def test_include_errors_name_the_path() -> None:
    spec = QuerySpecification(entity_type=Order)
    with pytest.raises(IncludeChainError) as exc_info:
        spec.include("itemz")
    assert exc_info.value.path == "itemz"
    assert exc_info.value.suggestions == ["items"]

    with pytest.raises(IncludeChainError) as exc_info:
        spec.include("items").then_include("quantity")
    assert exc_info.value.path == "items.quantity"

    with pytest.raises(IncludeChainError):
        spec.add_include_string("customer.email")
    with pytest.raises(InvalidSpecificationError):
        spec.include("items.product")


def test_include_without_entity_type_is_deferred() -> None:
    spec: QuerySpecification[Order] = QuerySpecification()
    spec.include("whatever").then_include("later")
    spec.add_include("anything.goes")
    (root,) = spec.include_chains
    assert root.is_resolved is False
    assert spec.includes == ("anything.goes",)


def test_selector_defaults_to_result_fields() -> None:
    spec = QuerySpecification(entity_type=Product).apply_selector(ProductSummary)
    assert spec.selector is not None
    assert dict(spec.selector.fields) == {"name": "name", "price": "price"}

    spec.apply_selector(ProductSummary, name="category.name", price="price")
    assert dict(spec.selector.fields) == {"name": "category.name", "price": "price"}


def test_execution_hints() -> None:
    spec = (
        QuerySpecification(entity_type=Product)
        .as_no_tracking()
        .ignore_query_filters()
        .as_split_fetch()
        .tag_with("  product list  ")
        .group_by("category.name")
        .apply_distinct()
    )
    assert spec.tracking_mode is TrackingMode.NO_TRACK
    assert spec.ignores_store_filters and spec.split_fetch and spec.distinct
    assert spec.tag == "product list"
    assert spec.group_key == "category.name"
    assert (
        spec.as_no_tracking_with_identity_resolution().tracking_mode
        is TrackingMode.NO_TRACK_IDENTITY_RESOLUTION
    )
    assert spec.as_tracking().tracking_mode is TrackingMode.TRACK
    with pytest.raises(InvalidSpecificationError):
        spec.tag_with(" ")


def test_operators_combine_predicates_only(registry, products) -> None:
    featured = FeaturedProducts(registry).order_by("price").apply_limit(1)
    cheap = AttributeSpecification("price", "<", 100, registry=registry)

    combined = featured & cheap
    assert isinstance(combined, AndSpecification)
    assert not hasattr(combined, "orderings")
    assert [p.id for p in products if combined.is_satisfied_by(p)] == [3, 6]

    inverted = ~featured
    assert isinstance(inverted, NotSpecification)
    assert [p.id for p in products if inverted.is_satisfied_by(p)] == [2, 4, 5]
