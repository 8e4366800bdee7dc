from __future__ import annotations

from dataclasses import dataclass

from sample_domain import Order, Product, Status

from specquery import AttributeSpecification, IncludePlanner, TrackingMode
from specquery.adapters import InMemoryQueryable


@dataclass(eq=False)
class Row:
    id: int
    group: str | None
    score: int | None = None


def _rows() -> list[Row]:
    return [
        Row(1, "b", 3),
        Row(2, "a", None),
        Row(3, "b", 1),
        Row(4, None, 3),
        Row(5, "a", 2),
    ]


async def test_where_is_generative(registry, products: list[Product]) -> None:
    source = InMemoryQueryable(products, Product)
    featured = source.where(
        AttributeSpecification("featured", "=", True, registry=registry)
    )

    assert await source.count() == 6
    assert [p.id for p in await featured.to_list()] == [1, 3, 6]


async def test_ordering_is_stable_and_lexicographic() -> None:
    query = (
        InMemoryQueryable(_rows(), Row)
        .order_by("score", descending=True)
        .then_by("group")
    )
    assert [r.id for r in await query.to_list()] == [4, 1, 5, 3, 2]


async def test_none_sorts_first_ascending() -> None:
    query = InMemoryQueryable(_rows(), Row).order_by("score")
    assert [r.id for r in await query.to_list()] == [2, 3, 5, 1, 4]


async def test_order_by_replaces_previous_orderings() -> None:
    query = InMemoryQueryable(_rows(), Row).order_by("score").order_by(
        "id", descending=True
    )
    assert [r.id for r in await query.to_list()] == [5, 4, 3, 2, 1]


async def test_group_clusters_in_first_appearance_order() -> None:
    query = InMemoryQueryable(_rows(), Row).group_by("group")
    assert [r.id for r in await query.to_list()] == [1, 3, 2, 5, 4]


async def test_orderings_win_over_group_clustering() -> None:
    query = (
        InMemoryQueryable(_rows(), Row)
        .group_by("group")
        .order_by("id", descending=True)
    )
    assert [r.id for r in await query.to_list()] == [5, 4, 3, 2, 1]


async def test_distinct_by_identity() -> None:
    row = Row(1, "a")
    query = InMemoryQueryable([row, row, Row(1, "a")], Row).distinct()
    assert len(await query.to_list()) == 2


async def test_window_applies_in_call_order() -> None:
    source = InMemoryQueryable(_rows(), Row).order_by("id")
    assert [r.id for r in await source.skip(1).take(2).to_list()] == [2, 3]
    assert [r.id for r in await source.take(2).skip(1).to_list()] == [2]
    assert await source.skip(10).to_list() == []


async def test_count_and_any_respect_window() -> None:
    source = InMemoryQueryable(_rows(), Row)
    assert await source.skip(3).count() == 2
    assert await source.skip(5).any() is False
    assert await source.any() is True


async def test_first(registry) -> None:
    source = InMemoryQueryable(_rows(), Row).order_by("id", descending=True)
    first = await source.first()
    assert first is not None and first.id == 5
    missing = source.where(AttributeSpecification("id", ">", 99, registry=registry))
    assert await missing.first() is None


async def test_store_filters(registry, products: list[Product]) -> None:
    has_category = AttributeSpecification(
        "category", "is_not_null", None, registry=registry
    )
    published = AttributeSpecification("status", "!=", Status.DRAFT, registry=registry)
    source = InMemoryQueryable(products, Product, store_filters=[has_category])
    assert [p.id for p in await source.to_list()] == [1, 2, 3, 4, 5]
    assert await source.ignore_store_filters().count() == 6
    assert await source.ignore_store_filters().where(published).count() == 5


async def test_tracking_modes(products: list[Product]) -> None:
    source = InMemoryQueryable(products, Product)

    tracked = await source.to_list()
    assert tracked[0] is products[0]

    detached = await source.with_tracking(TrackingMode.NO_TRACK).to_list()
    assert detached[0] is not products[0]
    assert detached[0].name == products[0].name

    resolved = await source.with_tracking(
        TrackingMode.NO_TRACK_IDENTITY_RESOLUTION
    ).to_list()
    assert resolved[0] is not products[0]


async def test_hints_are_recorded(catalog, orders: list[Order]) -> None:
    steps = IncludePlanner(catalog).plan_path("items.product", Order)
    query = (
        InMemoryQueryable(orders, Order)
        .include(steps)
        .with_tag("orders")
        .with_split_fetch()
    )
    assert query.include_log == (tuple(steps),)
    assert query.tag == "orders"
    assert query.split_fetch is True
    assert len(await query.to_list()) == 3
