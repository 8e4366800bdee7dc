"""
Runtime filtering from end-user payloads.

A :class:`FilterModel` is validated with pydantic, compiled by
:class:`FilterCompiler` into the same specification trees every backend
understands, and can be wrapped in a :class:`FilterSpecification` for
use with the repository.
"""

from .builder import FilterBuilder
from .compiler import FilterCompiler, FilterCompilerOptions
from .model import (
    FilterGroup,
    FilterItem,
    FilterLogic,
    FilterModel,
    SortDirection,
    SortItem,
)
from .operators import FilterOperator, resolve_filter_operator
from .specification import FilterSpecification

__all__ = [
    "FilterBuilder",
    "FilterCompiler",
    "FilterCompilerOptions",
    "FilterGroup",
    "FilterItem",
    "FilterLogic",
    "FilterModel",
    "FilterOperator",
    "FilterSpecification",
    "SortDirection",
    "SortItem",
    "resolve_filter_operator",
]
