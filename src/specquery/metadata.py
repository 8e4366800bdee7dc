"""
Entity introspection for field resolution.

The filter compiler, the include planner and the query compiler look up
fields through an :class:`EntityCatalog` rather than by ``getattr`` on
user-supplied names.  A catalog entry lists exactly the declared fields
of a type (case-insensitive), so an unknown name is a dictionary miss
and never reaches arbitrary attributes.

Supported entity shapes:

- SQLAlchemy mapped classes (columns and relationships via ``inspect``)
- pydantic v2 models (``model_fields``)
- dataclasses and plain annotated classes (``typing.get_type_hints``)
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import threading
import typing
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from .coercion import unwrap_optional

logger = logging.getLogger("specquery.metadata")


@dataclass(frozen=True)
class FieldDescriptor:
    """One declared attribute of an entity type."""

    name: str
    python_type: Any
    nullable: bool = False
    relation_target: type[Any] | None = None
    is_collection: bool = False

    @property
    def is_relation(self) -> bool:
        return self.relation_target is not None

    @property
    def return_type(self) -> Any:
        """The attribute's value type: ``list[Target]`` for collections."""
        if self.relation_target is None:
            return self.python_type
        if self.is_collection:
            return list[self.relation_target]  # type: ignore[name-defined]
        return self.relation_target


@dataclass(frozen=True)
class EntityDescriptor:
    """
    All queryable fields of one entity type, keyed case-insensitively.

    Lookups fall back to ignoring underscores, so camelCase or PascalCase
    names sent by API clients (``createdAt``) find snake_case attributes
    (``created_at``).  An exact case-insensitive match always wins.
    """

    entity_type: type[Any]
    fields: Mapping[str, FieldDescriptor] = field(default_factory=dict)
    _loose: dict[str, FieldDescriptor] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        for key, descriptor in self.fields.items():
            self._loose.setdefault(key.replace("_", ""), descriptor)

    def get(self, name: str) -> FieldDescriptor | None:
        lowered = name.lower()
        found = self.fields.get(lowered)
        if found is None:
            found = self._loose.get(lowered.replace("_", ""))
        return found

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields.values()]

    @property
    def relation_names(self) -> list[str]:
        return [f.name for f in self.fields.values() if f.is_relation]

    @property
    def string_fields(self) -> list[FieldDescriptor]:
        return [
            f
            for f in self.fields.values()
            if not f.is_relation
            and isinstance(f.python_type, type)
            and issubclass(f.python_type, str)
            and not _is_enum(f.python_type)
        ]


def _is_enum(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, enum.Enum)


def is_entity_type(tp: Any) -> bool:
    """True for classes the catalog can describe as relation targets."""
    if not isinstance(tp, type):
        return False
    if issubclass(tp, BaseModel) or dataclasses.is_dataclass(tp):
        return True
    try:
        sa_inspect(tp)
    except NoInspectionAvailable:
        return False
    return True


class EntityCatalog:
    """
    Cache of :class:`EntityDescriptor` per entity type.

    Descriptors are built once per type and are immutable, so concurrent
    first lookups at worst build the same descriptor twice.
    """

    _shared: ClassVar[EntityCatalog | None] = None

    def __init__(self) -> None:
        self._cache: dict[type[Any], EntityDescriptor] = {}
        self._lock = threading.Lock()

    @classmethod
    def default(cls) -> EntityCatalog:
        """Process-wide catalog used when callers do not inject one."""
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    # -- look-up -------------------------------------------------------------

    def describe(self, entity_type: type[Any]) -> EntityDescriptor:
        cached = self._cache.get(entity_type)
        if cached is not None:
            return cached
        descriptor = self._build(entity_type)
        with self._lock:
            self._cache.setdefault(entity_type, descriptor)
        return descriptor

    def resolve(
        self, entity_type: type[Any], path: str
    ) -> list[FieldDescriptor] | None:
        """
        Resolve a dotted path into the descriptors of each segment.

        Returns ``None`` when any segment is unknown or a non-final segment
        is not a relation.
        """
        chain: list[FieldDescriptor] = []
        owner: type[Any] | None = entity_type
        for part in path.split("."):
            if owner is None:
                return None
            descriptor = self.describe(owner).get(part)
            if descriptor is None:
                return None
            chain.append(descriptor)
            owner = descriptor.relation_target
        return chain

    def canonical_path(self, entity_type: type[Any], path: str) -> str | None:
        """Return *path* with each segment in its declared spelling."""
        chain = self.resolve(entity_type, path)
        if chain is None:
            return None
        return ".".join(d.name for d in chain)

    # -- construction --------------------------------------------------------

    def _build(self, entity_type: type[Any]) -> EntityDescriptor:
        try:
            mapper = sa_inspect(entity_type)
        except NoInspectionAvailable:
            mapper = None

        if mapper is not None and hasattr(mapper, "column_attrs"):
            fields = self._from_mapper(mapper)
        elif isinstance(entity_type, type) and issubclass(entity_type, BaseModel):
            fields = self._from_annotations(
                {
                    name: info.annotation
                    for name, info in entity_type.model_fields.items()
                }
            )
        else:
            fields = self._from_annotations(_type_hints(entity_type))

        logger.debug(
            "Described %s: %d fields", getattr(entity_type, "__name__", entity_type),
            len(fields),
        )
        return EntityDescriptor(
            entity_type=entity_type,
            fields={d.name.lower(): d for d in fields},
        )

    @staticmethod
    def _from_mapper(mapper: Any) -> list[FieldDescriptor]:
        fields: list[FieldDescriptor] = []
        for attr in mapper.column_attrs:
            column = attr.columns[0]
            try:
                python_type: Any = column.type.python_type
            except NotImplementedError:
                python_type = object
            fields.append(
                FieldDescriptor(
                    name=attr.key,
                    python_type=python_type,
                    nullable=bool(getattr(column, "nullable", True)),
                )
            )
        for rel in mapper.relationships:
            target = rel.mapper.class_
            fields.append(
                FieldDescriptor(
                    name=rel.key,
                    python_type=target,
                    nullable=not rel.uselist,
                    relation_target=target,
                    is_collection=bool(rel.uselist),
                )
            )
        return fields

    @staticmethod
    def _from_annotations(hints: Mapping[str, Any]) -> list[FieldDescriptor]:
        fields: list[FieldDescriptor] = []
        for name, annotation in hints.items():
            if name.startswith("_") or typing.get_origin(annotation) is ClassVar:
                continue
            inner, nullable = unwrap_optional(annotation)
            origin = typing.get_origin(inner)
            if origin is not None and isinstance(origin, type) and issubclass(
                origin, Collection
            ) and not issubclass(origin, str | bytes | Mapping):
                args = typing.get_args(inner)
                element = args[0] if args else Any
                element, _ = unwrap_optional(element)
                fields.append(
                    FieldDescriptor(
                        name=name,
                        python_type=inner,
                        nullable=nullable,
                        relation_target=element if is_entity_type(element) else None,
                        is_collection=True,
                    )
                )
                continue
            fields.append(
                FieldDescriptor(
                    name=name,
                    python_type=inner,
                    nullable=nullable,
                    relation_target=inner if is_entity_type(inner) else None,
                )
            )
        return fields


def _type_hints(entity_type: type[Any]) -> dict[str, Any]:
    try:
        return typing.get_type_hints(entity_type)
    except (NameError, TypeError):
        logger.warning(
            "Could not evaluate annotations of %s; using raw __annotations__",
            getattr(entity_type, "__name__", entity_type),
        )
        hints: dict[str, Any] = {}
        for klass in reversed(getattr(entity_type, "__mro__", ())):
            hints.update(getattr(klass, "__annotations__", {}))
        return hints
