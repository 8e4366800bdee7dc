"""
SQLAlchemy 2.x async backend.

- :func:`build_sqla_filter` compiles ``spec.to_dict()`` trees into
  ``WHERE`` expressions through a pluggable operator registry.
- :class:`SQLAlchemyQueryable` implements the queryable protocol over an
  ``AsyncSession``.
- :func:`build_loader_option` turns include chains into loader options.
"""

from .compiler import build_sqla_filter, mapped_attribute
from .loading import build_loader_option
from .operators import DEFAULT_SQLA_REGISTRY, build_default_sqla_registry
from .queryable import SQLAlchemyQueryable
from .strategy import SQLAlchemyOperator, SQLAlchemyOperatorRegistry

__all__ = [
    "DEFAULT_SQLA_REGISTRY",
    "SQLAlchemyOperator",
    "SQLAlchemyOperatorRegistry",
    "SQLAlchemyQueryable",
    "build_default_sqla_registry",
    "build_loader_option",
    "build_sqla_filter",
    "mapped_attribute",
]
