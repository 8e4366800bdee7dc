from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from sample_domain import Category, Customer, Order, OrderItem, Product

from specquery import (
    IncludeChainError,
    IncludeKind,
    IncludePlanner,
    IncludeStrategyRegistry,
    LinkShape,
    QuerySpecification,
)
from specquery.includes import (
    CollectionToCollectionStrategy,
    IncludeLink,
    ReferenceToCollectionStrategy,
    ReferenceToReferenceStrategy,
    build_default_include_registry,
    resolve_link,
)


@dataclass(eq=False)
class Tag:
    id: int
    label: str


@dataclass(eq=False)
class Post:
    id: int
    tags: list[Tag] = field(default_factory=list)


@dataclass(eq=False)
class Author:
    id: int
    posts: list[Post] = field(default_factory=list)
    profile: Profile | None = None


@dataclass(eq=False)
class Profile:
    id: int
    avatar: Avatar | None = None
    links: list[Tag] = field(default_factory=list)


@dataclass(eq=False)
class Avatar:
    id: int
    url: str


@pytest.fixture
def planner(catalog) -> IncludePlanner:
    return IncludePlanner(catalog)


def test_collection_then_reference(planner: IncludePlanner) -> None:
    spec = QuerySpecification(entity_type=Order)
    spec.include("items").then_include("product")

    (chain,) = planner.plan_nodes(spec.include_chains, Order)
    items, product = chain

    assert items.kind is IncludeKind.INCLUDE
    assert items.shape is LinkShape.COLLECTION and items.parent_shape is None
    assert items.input_type is Order
    assert items.return_type == list[OrderItem]

    assert product.kind is IncludeKind.THEN_INCLUDE
    assert product.parent_shape is LinkShape.COLLECTION
    assert product.shape is LinkShape.REFERENCE
    assert product.input_type == list[OrderItem]
    assert product.owner_type is OrderItem
    assert product.return_type is Product


def test_three_level_chain(planner: IncludePlanner) -> None:
    steps = planner.plan_path("items.product.category", Order)
    assert [s.name for s in steps] == ["items", "product", "category"]
    assert [s.kind for s in steps] == [
        IncludeKind.INCLUDE,
        IncludeKind.THEN_INCLUDE,
        IncludeKind.THEN_INCLUDE,
    ]
    assert steps[2].input_type is Product
    assert steps[2].target_type is Category


def test_one_chain_per_leaf(planner: IncludePlanner) -> None:
    spec = QuerySpecification(entity_type=Author)
    profile = spec.include("profile")
    profile.then_include("avatar")
    profile.then_include("links")
    spec.include("posts").then_include("tags")

    chains = planner.plan_nodes(spec.include_chains, Author)
    assert [[s.name for s in c] for c in chains] == [
        ["profile", "avatar"],
        ["profile", "links"],
        ["posts", "tags"],
    ]


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("profile", [(None, LinkShape.REFERENCE)]),
        ("posts", [(None, LinkShape.COLLECTION)]),
        (
            "profile.avatar",
            [(None, LinkShape.REFERENCE), (LinkShape.REFERENCE, LinkShape.REFERENCE)],
        ),
        (
            "profile.links",
            [(None, LinkShape.REFERENCE), (LinkShape.REFERENCE, LinkShape.COLLECTION)],
        ),
        (
            "posts.tags",
            [
                (None, LinkShape.COLLECTION),
                (LinkShape.COLLECTION, LinkShape.COLLECTION),
            ],
        ),
    ],
)
def test_every_shape_pair(planner, path, expected) -> None:
    steps = planner.plan_path(path, Author)
    assert [(s.parent_shape, s.shape) for s in steps] == expected


def test_reference_to_reference_input_type(planner: IncludePlanner) -> None:
    root, avatar = planner.plan_path("profile.avatar", Author)
    assert root.input_type is Author
    assert avatar.input_type is Profile
    assert avatar.return_type is Avatar


def test_unknown_link(planner: IncludePlanner) -> None:
    with pytest.raises(IncludeChainError) as exc_info:
        planner.plan_path("items.prodcut", Order)
    assert exc_info.value.path == "items.prodcut"
    assert exc_info.value.owner == "OrderItem"
    assert exc_info.value.suggestions == ["product"]


def test_non_relation_link(planner: IncludePlanner) -> None:
    with pytest.raises(IncludeChainError, match="is not a relationship"):
        planner.plan_path("customer.name", Order)


def test_resolve_link_returns_element_type(catalog) -> None:
    descriptor, target = resolve_link(catalog, Order, "items", "items")
    assert descriptor.name == "items"
    assert target is OrderItem


def test_resolve_path_links_parents(planner: IncludePlanner) -> None:
    root = planner.resolve_path("items.product.category", Order)
    (product,) = root.children
    (category,) = product.children
    assert category.parent is product
    assert category.full_path == "items.product.category"
    assert category.target_type is Category


def test_continuation_needs_a_parent() -> None:
    orphan = IncludeLink(
        path="avatar",
        owner_type=Profile,
        target_type=Avatar,
        return_type=Avatar,
        is_collection_link=False,
    )
    with pytest.raises(IncludeChainError, match="has no parent link"):
        ReferenceToReferenceStrategy().build(orphan)


def test_deferred_nodes_resolve_at_plan_time(planner: IncludePlanner) -> None:
    spec: QuerySpecification[Order] = QuerySpecification()
    spec.include("Customer")
    (chain,) = planner.plan_nodes(spec.include_chains, Order)
    assert chain[0].name == "customer"
    assert chain[0].target_type is Customer

    bad: QuerySpecification[Order] = QuerySpecification()
    bad.include("customer").then_include("orders")
    with pytest.raises(IncludeChainError):
        planner.plan_nodes(bad.include_chains, Order)


def test_missing_strategy(catalog) -> None:
    strategies = build_default_include_registry()
    strategies.unregister(LinkShape.COLLECTION, LinkShape.REFERENCE)
    planner = IncludePlanner(catalog, strategies)
    with pytest.raises(IncludeChainError, match="collection -> reference"):
        planner.plan_path("items.product", Order)


def test_custom_registry(catalog) -> None:
    strategies = IncludeStrategyRegistry()
    strategies.register_all(
        ReferenceToReferenceStrategy(),
        ReferenceToCollectionStrategy(),
        CollectionToCollectionStrategy(),
    )
    assert strategies.get(None, LinkShape.REFERENCE) is None
    with pytest.raises(IncludeChainError, match="root -> reference"):
        IncludePlanner(catalog, strategies).plan_path("customer", Order)
