"""Shared fixtures for specquery tests."""

from __future__ import annotations

import datetime

import pytest
from sample_domain import Customer, Order, OrderItem, Product, make_products

from specquery.filtering import FilterCompiler
from specquery.metadata import EntityCatalog
from specquery.operators_memory import build_default_registry


@pytest.fixture
def registry():
    """Default in-memory operator registry for building specs."""
    return build_default_registry()


@pytest.fixture
def catalog() -> EntityCatalog:
    return EntityCatalog()


@pytest.fixture
def filter_compiler(catalog: EntityCatalog, registry) -> FilterCompiler:
    return FilterCompiler(catalog=catalog, registry=registry)


@pytest.fixture
def products() -> list[Product]:
    return make_products()


@pytest.fixture
def orders(products: list[Product]) -> list[Order]:
    alice = Customer(1, "Alice", "alice@example.com")
    bob = Customer(2, "Bob")
    placed = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)
    return [
        Order(
            1,
            "SO-001",
            placed,
            customer=alice,
            items=[OrderItem(1, products[0], 2), OrderItem(2, products[2], 1)],
        ),
        Order(2, "SO-002", placed + datetime.timedelta(days=1), customer=bob),
        Order(
            3,
            "SO-003",
            placed + datetime.timedelta(days=2),
            customer=alice,
            items=[OrderItem(3, products[1], 1)],
            notes="gift",
        ),
    ]
