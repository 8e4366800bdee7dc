"""
Eager-load chain resolution.

An include chain such as ``Order -> items -> product`` is a path through
the relationship graph where each link is either a *reference* (one
related entity) or a *collection* (many).  A continuation link has to
know what shape its parent produced: after ``items`` the current value
is ``list[OrderItem]``, not ``OrderItem``.

The :class:`IncludePlanner` resolves :class:`IncludeNode` trees into
:class:`IncludeLink` trees against the entity catalog, then turns every
root-to-leaf path into a chain of :class:`IncludeStep` values.  Each
step is produced by a strategy keyed by ``(parent_shape, shape)``; there
are six built-in strategies and new shapes can be registered.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import IncludeChainError
from .metadata import EntityCatalog

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .metadata import FieldDescriptor
    from .specification import IncludeNode

logger = logging.getLogger("specquery.includes")


class LinkShape(str, Enum):
    REFERENCE = "reference"
    COLLECTION = "collection"


class IncludeKind(str, Enum):
    INCLUDE = "include"
    THEN_INCLUDE = "then_include"


def resolve_link(
    catalog: EntityCatalog, owner: type[Any], name: str, full_path: str
) -> tuple[FieldDescriptor, type[Any]]:
    """
    Look up relation *name* on *owner*; returns its descriptor and target.

    Raises:
        IncludeChainError: When *name* is unknown or not a relationship.
    """
    descriptor = catalog.describe(owner)
    found = descriptor.get(name)
    if found is None:
        raise IncludeChainError(
            f"'{owner.__name__}' has no attribute '{name}' (include '{full_path}').",
            path=full_path,
            owner=owner.__name__,
            available_relations=descriptor.relation_names,
        )
    target = found.relation_target
    if target is None:
        raise IncludeChainError(
            f"'{owner.__name__}.{found.name}' is not a relationship "
            f"(include '{full_path}').",
            path=full_path,
            owner=owner.__name__,
            available_relations=descriptor.relation_names,
        )
    return found, target


# ---------------------------------------------------------------------------
# Resolved links and emitted steps
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class IncludeLink:
    """A resolved include link; ``target_type`` is the element type."""

    path: str
    owner_type: type[Any]
    target_type: type[Any]
    return_type: Any
    is_collection_link: bool
    parent: IncludeLink | None = None
    children: list[IncludeLink] = field(default_factory=list)

    @property
    def shape(self) -> LinkShape:
        return LinkShape.COLLECTION if self.is_collection_link else LinkShape.REFERENCE

    @property
    def full_path(self) -> str:
        if self.parent is None:
            return self.path
        return f"{self.parent.full_path}.{self.path}"


@dataclass(frozen=True)
class IncludeStep:
    """
    One eager-load instruction as a queryable applies it.

    ``input_type`` is what the previous step produced (the root entity
    for an INCLUDE step, ``list[Parent]`` after a collection link).
    """

    kind: IncludeKind
    name: str
    owner_type: type[Any]
    input_type: Any
    return_type: Any
    target_type: type[Any]
    parent_shape: LinkShape | None
    shape: LinkShape


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class IncludeStrategy(ABC):
    """Builds the step for links of one ``(parent_shape, shape)`` pair."""

    @property
    @abstractmethod
    def parent_shape(self) -> LinkShape | None:
        """Shape of the parent link; ``None`` for a root link."""
        ...

    @property
    @abstractmethod
    def shape(self) -> LinkShape: ...

    @abstractmethod
    def build(self, link: IncludeLink) -> IncludeStep: ...


class _RootStrategy(IncludeStrategy):
    @property
    def parent_shape(self) -> LinkShape | None:
        return None

    def build(self, link: IncludeLink) -> IncludeStep:
        return IncludeStep(
            kind=IncludeKind.INCLUDE,
            name=link.path,
            owner_type=link.owner_type,
            input_type=link.owner_type,
            return_type=link.return_type,
            target_type=link.target_type,
            parent_shape=None,
            shape=self.shape,
        )


class RootReferenceStrategy(_RootStrategy):
    @property
    def shape(self) -> LinkShape:
        return LinkShape.REFERENCE


class RootCollectionStrategy(_RootStrategy):
    @property
    def shape(self) -> LinkShape:
        return LinkShape.COLLECTION


class _ContinuationStrategy(IncludeStrategy):
    def build(self, link: IncludeLink) -> IncludeStep:
        if link.parent is None:
            raise IncludeChainError(
                f"Continuation link '{link.full_path}' has no parent link.",
                path=link.full_path,
                owner=link.owner_type.__name__,
            )
        return IncludeStep(
            kind=IncludeKind.THEN_INCLUDE,
            name=link.path,
            owner_type=link.owner_type,
            input_type=link.parent.return_type,
            return_type=link.return_type,
            target_type=link.target_type,
            parent_shape=self.parent_shape,
            shape=self.shape,
        )


class ReferenceToReferenceStrategy(_ContinuationStrategy):
    @property
    def parent_shape(self) -> LinkShape | None:
        return LinkShape.REFERENCE

    @property
    def shape(self) -> LinkShape:
        return LinkShape.REFERENCE


class ReferenceToCollectionStrategy(_ContinuationStrategy):
    @property
    def parent_shape(self) -> LinkShape | None:
        return LinkShape.REFERENCE

    @property
    def shape(self) -> LinkShape:
        return LinkShape.COLLECTION


class CollectionToReferenceStrategy(_ContinuationStrategy):
    @property
    def parent_shape(self) -> LinkShape | None:
        return LinkShape.COLLECTION

    @property
    def shape(self) -> LinkShape:
        return LinkShape.REFERENCE


class CollectionToCollectionStrategy(_ContinuationStrategy):
    @property
    def parent_shape(self) -> LinkShape | None:
        return LinkShape.COLLECTION

    @property
    def shape(self) -> LinkShape:
        return LinkShape.COLLECTION


class IncludeStrategyRegistry:
    """Registry of :class:`IncludeStrategy` keyed by shape pair."""

    def __init__(self) -> None:
        self._strategies: dict[tuple[LinkShape | None, LinkShape], IncludeStrategy] = {}

    def register(self, strategy: IncludeStrategy) -> None:
        self._strategies[(strategy.parent_shape, strategy.shape)] = strategy

    def register_all(self, *strategies: IncludeStrategy) -> None:
        for strategy in strategies:
            self.register(strategy)

    def unregister(self, parent_shape: LinkShape | None, shape: LinkShape) -> None:
        self._strategies.pop((parent_shape, shape), None)

    def get(
        self, parent_shape: LinkShape | None, shape: LinkShape
    ) -> IncludeStrategy | None:
        return self._strategies.get((parent_shape, shape))

    def build(self, link: IncludeLink) -> IncludeStep:
        """
        Build the step for *link*.

        Raises:
            IncludeChainError: If no strategy handles the link's shape pair.
        """
        parent_shape = link.parent.shape if link.parent is not None else None
        strategy = self.get(parent_shape, link.shape)
        if strategy is None:
            raise IncludeChainError(
                f"No include strategy for {getattr(parent_shape, 'value', 'root')}"
                f" -> {link.shape.value} (include '{link.full_path}').",
                path=link.full_path,
                owner=link.owner_type.__name__,
            )
        return strategy.build(link)


def build_default_include_registry() -> IncludeStrategyRegistry:
    registry = IncludeStrategyRegistry()
    registry.register_all(
        RootReferenceStrategy(),
        RootCollectionStrategy(),
        ReferenceToReferenceStrategy(),
        ReferenceToCollectionStrategy(),
        CollectionToReferenceStrategy(),
        CollectionToCollectionStrategy(),
    )
    return registry


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------


class IncludePlanner:
    """
    Resolve include trees and dotted include paths into step chains.

    One chain is emitted per leaf link; intermediate links are loaded as
    part of their leaf's chain.
    """

    def __init__(
        self,
        catalog: EntityCatalog | None = None,
        strategies: IncludeStrategyRegistry | None = None,
    ) -> None:
        self._catalog = catalog or EntityCatalog.default()
        self._strategies = strategies or build_default_include_registry()

    def resolve(
        self,
        node: IncludeNode,
        owner_type: type[Any],
        parent: IncludeLink | None = None,
    ) -> IncludeLink:
        """Resolve *node* and its descendants without mutating them."""
        full_path = node.path if parent is None else f"{parent.full_path}.{node.path}"
        descriptor, target = resolve_link(
            self._catalog, owner_type, node.path, full_path
        )
        link = IncludeLink(
            path=descriptor.name,
            owner_type=owner_type,
            target_type=target,
            return_type=descriptor.return_type,
            is_collection_link=descriptor.is_collection,
            parent=parent,
        )
        link.children = [self.resolve(child, target, link) for child in node.children]
        return link

    def resolve_path(self, path: str, owner_type: type[Any]) -> IncludeLink:
        """Resolve a dotted include path into a single-branch link chain."""
        links: list[IncludeLink] = []
        owner = owner_type
        walked: list[str] = []
        for part in path.split("."):
            walked.append(part)
            descriptor, target = resolve_link(
                self._catalog, owner, part, ".".join(walked)
            )
            parent = links[-1] if links else None
            link = IncludeLink(
                path=descriptor.name,
                owner_type=owner,
                target_type=target,
                return_type=descriptor.return_type,
                is_collection_link=descriptor.is_collection,
                parent=parent,
            )
            if parent is not None:
                parent.children.append(link)
            links.append(link)
            owner = target
        return links[0]

    def plan(self, roots: Iterable[IncludeLink]) -> list[list[IncludeStep]]:
        """Emit one step chain per root-to-leaf path, depth first."""
        chains: list[list[IncludeStep]] = []
        for root in roots:
            self._walk(root, [], chains)
        return chains

    def plan_nodes(
        self, nodes: Iterable[IncludeNode], entity_type: type[Any]
    ) -> list[list[IncludeStep]]:
        return self.plan(self.resolve(node, entity_type) for node in nodes)

    def plan_path(self, path: str, entity_type: type[Any]) -> list[IncludeStep]:
        (chain,) = self.plan([self.resolve_path(path, entity_type)])
        return chain

    def _walk(
        self,
        link: IncludeLink,
        prefix: list[IncludeStep],
        chains: list[list[IncludeStep]],
    ) -> None:
        steps = [*prefix, self._strategies.build(link)]
        if not link.children:
            logger.debug(
                "Include chain %s: %s",
                link.full_path,
                " -> ".join(f"{s.kind.value}({s.name})" for s in steps),
            )
            chains.append(steps)
            return
        for child in link.children:
            self._walk(child, steps, chains)
