"""End-to-end checks of the SQLAlchemy backend against in-memory SQLite."""

from __future__ import annotations

import datetime
from collections.abc import AsyncGenerator
from decimal import Decimal
from typing import Any

import pytest
from sql_domain import (
    Base,
    CategoryRecord,
    CustomerRecord,
    OrderItemRecord,
    OrderRecord,
    ProductRecord,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from specquery import (
    AttributeSpecification,
    FilterModel,
    QueryCompiler,
    QuerySpecification,
    SpecificationRepository,
)
from specquery.adapters.sqlalchemy import SQLAlchemyQueryable


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as sess:
        sess.add_all(_seed())
        await sess.commit()
        sess.expunge_all()
        yield sess


def _seed() -> list[Any]:
    tools = CategoryRecord(id=1, name="Tools")
    lamps = CategoryRecord(id=2, name="Lamps")
    legacy = CategoryRecord(id=3, name="Legacy", deleted=True)

    def product(pid, name, price, featured, rating, category, **extra):
        return ProductRecord(
            id=pid,
            name=name,
            price=Decimal(price),
            featured=featured,
            rating=rating,
            category=category,
            **extra,
        )

    products = [
        product(1, "Desk Lamp", 120, True, 4.0, lamps),
        product(2, "Floor Lamp", 250, False, 4.8, lamps),
        product(3, "Hammer", 35, True, 4.9, tools),
        product(4, "Drill", 180, False, 3.9, legacy),
        product(
            5, "Wall Lamp", 100, False, 4.2, lamps, description="Brass 100% finish"
        ),
        product(6, "Sander", 95, True, 4.7, None),
        product(7, "Old Lamp", 60, False, 4.1, lamps, deleted=True),
    ]
    alice = CustomerRecord(id=1, name="Alice", email="alice@example.com")
    bob = CustomerRecord(id=2, name="Bob")
    placed = datetime.datetime(2024, 5, 1, 12, 0)
    orders = [
        OrderRecord(
            id=1,
            number="SO-001",
            placed_at=placed,
            customer=alice,
            items=[
                OrderItemRecord(id=1, product=products[0], quantity=2),
                OrderItemRecord(id=2, product=products[2], quantity=1),
            ],
        ),
        OrderRecord(
            id=2,
            number="SO-002",
            placed_at=placed + datetime.timedelta(days=1),
            customer=bob,
        ),
        OrderRecord(
            id=3,
            number="SO-003",
            placed_at=placed + datetime.timedelta(days=2),
            customer=alice,
            items=[OrderItemRecord(id=3, product=products[1], quantity=1)],
        ),
    ]
    return [tools, lamps, legacy, *products, alice, bob, *orders]


@pytest.fixture
def live(registry) -> dict[type[Any], AttributeSpecification]:
    return {
        ProductRecord: AttributeSpecification("deleted", "=", False, registry=registry),
        CategoryRecord: AttributeSpecification(
            "deleted", "=", False, registry=registry
        ),
    }


@pytest.fixture
def compiler(catalog, registry) -> QueryCompiler:
    return QueryCompiler(catalog, registry=registry)


@pytest.fixture
def product_repo(session, live, compiler) -> SpecificationRepository[ProductRecord]:
    return SpecificationRepository(
        ProductRecord,
        lambda: SQLAlchemyQueryable(session, ProductRecord, store_filters=live),
        compiler=compiler,
    )


@pytest.fixture
def order_repo(session, live, compiler) -> SpecificationRepository[OrderRecord]:
    return SpecificationRepository(
        OrderRecord,
        lambda: SQLAlchemyQueryable(session, OrderRecord, store_filters=live),
        compiler=compiler,
    )


def _ids(rows: list[Any]) -> list[int]:
    return sorted(row.id for row in rows)


def _spec(*args: Any) -> QuerySpecification[ProductRecord]:
    return QuerySpecification(*args, entity_type=ProductRecord)


async def test_filter_model_end_to_end(product_repo) -> None:
    model = FilterModel.model_validate(
        {
            "items": [
                {"field": "Price", "operator": "greater_than_or_equal", "value": 100}
            ],
            "groups": [
                {
                    "logic": "Or",
                    "items": [
                        {"field": "Featured", "operator": "equals", "value": True},
                        {"field": "Rating", "operator": "greater_than", "value": 4.5},
                    ],
                }
            ],
        }
    )
    assert _ids(await product_repo.find_many(model)) == [1, 2]


async def test_not_equal_and_not_in_keep_null_rows(product_repo, registry) -> None:
    ne = AttributeSpecification(
        "description", "!=", "Brass 100% finish", registry=registry
    )
    not_in = AttributeSpecification("category_id", "not_in", [1], registry=registry)
    assert _ids(await product_repo.find_many(ne)) == [1, 2, 3, 4, 6]
    assert _ids(await product_repo.find_many(not_in)) == [1, 2, 4, 5, 6]


async def test_reference_and_collection_paths(order_repo, registry) -> None:
    by_customer = AttributeSpecification(
        "customer.name", "=", "Alice", registry=registry
    )
    bulk = AttributeSpecification("items.quantity", ">=", 2, registry=registry)
    assert _ids(await order_repo.find_many(by_customer)) == [1, 3]
    assert _ids(await order_repo.find_many(bulk)) == [1]


@pytest.mark.parametrize("split", [False, True])
async def test_three_level_include(order_repo, split: bool) -> None:
    spec = QuerySpecification(entity_type=OrderRecord).order_by("id")
    spec.include("items").then_include("product").then_include("category")
    if split:
        spec.as_split_fetch()

    first, second, third = await order_repo.find_many(spec)

    assert sorted(i.product.name for i in first.items) == ["Desk Lamp", "Hammer"]
    assert sorted(i.product.category.name for i in first.items) == [
        "Lamps",
        "Tools",
    ]
    assert second.items == []
    assert third.items[0].product.category.name == "Lamps"


async def test_find_paged(product_repo) -> None:
    spec = _spec().order_by("price").apply_paging_by_index(1, 2)
    page = await product_repo.find_paged(spec)
    assert [p.id for p in page.items] == [5, 1]
    assert page.total_count == 6
    assert page.total_pages == 3


async def test_search(product_repo) -> None:
    assert _ids(await product_repo.find_many(_spec().apply_search("lamp"))) == [1, 2, 5]
    assert _ids(await product_repo.find_many(_spec().apply_search("100%"))) == [5]

    everything = _spec().apply_search("LAMP").ignore_query_filters()
    assert _ids(await product_repo.find_many(everything)) == [1, 2, 5, 7]


async def test_group_by_keeps_groups_adjacent(product_repo) -> None:
    rows = await product_repo.find_many(_spec().group_by("category_id"))
    assert [p.category_id for p in rows] == [None, 1, 2, 2, 2, 3]


async def test_store_filters_and_ignoring_them(product_repo) -> None:
    assert await product_repo.count() == 6
    assert await product_repo.count(_spec().ignore_query_filters()) == 7


async def test_loader_criteria_hide_filtered_relations(product_repo) -> None:
    spec = _spec().as_no_tracking().order_by("id")
    spec.include("category")
    rows = {p.id: p for p in await product_repo.find_many(spec)}

    assert rows[3].category.name == "Tools"
    assert rows[4].category is None
    assert rows[4].category_id == 3


async def test_tagged_query_executes(product_repo) -> None:
    rows = await product_repo.find_many(_spec().tag_with("catalogue */ page"))
    assert len(rows) == 6


async def test_no_tracking_detaches_rows(product_repo, session) -> None:
    detached = await product_repo.find_one(_spec().order_by("id").as_no_tracking())
    assert detached is not None
    assert detached not in session

    tracked = await product_repo.find_one(_spec().order_by("id"))
    assert tracked is not detached
    assert tracked in session


async def test_no_tracking_leaves_tracked_rows_attached(product_repo, session) -> None:
    tracked = await product_repo.find_one(_spec().order_by("id"))
    again = await product_repo.find_one(_spec().order_by("id").as_no_tracking())
    assert again is tracked
    assert tracked in session

    tracked.name = "Renamed"
    await session.commit()

    persisted = await session.scalar(
        select(ProductRecord.name).where(ProductRecord.id == tracked.id)
    )
    assert persisted == "Renamed"


async def test_cursor_page(product_repo) -> None:
    spec = _spec().order_by_descending("rating")

    first = await product_repo.find_cursor_page(spec, "price", size=4)
    assert [p.id for p in first.items] == [3, 6, 5, 1]
    assert first.has_next is True

    second = await product_repo.find_cursor_page(
        spec, "price", size=4, after=first.last_cursor
    )
    assert [p.id for p in second.items] == [4, 2]
    assert second.has_next is False


async def test_exists_and_count(product_repo, registry) -> None:
    pricey = AttributeSpecification("price", ">", 200, registry=registry)
    missing = AttributeSpecification("price", ">", 1000, registry=registry)
    assert await product_repo.exists(pricey) is True
    assert await product_repo.exists(missing) is False
    assert await product_repo.count(pricey) == 1
