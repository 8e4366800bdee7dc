from .ast import AttributeSpecification, SpecificationFactory
from .base import (
    AndSpecification,
    BaseSpecification,
    ConstantSpecification,
    NotSpecification,
    OrSpecification,
    all_of,
    any_of,
    match_all,
    match_none,
)
from .compiler import QueryCompiler
from .evaluator import MemoryOperator, MemoryOperatorRegistry
from .exceptions import (
    FieldNotFoundError,
    IncludeChainError,
    InvalidSpecificationError,
    OperatorNotFoundError,
    PagingNotEnabledError,
    ProjectionError,
    SpecificationError,
    ValidationError,
)
from .filtering import (
    FilterBuilder,
    FilterCompiler,
    FilterCompilerOptions,
    FilterGroup,
    FilterItem,
    FilterLogic,
    FilterModel,
    FilterOperator,
    FilterSpecification,
    SortDirection,
    SortItem,
)
from .includes import (
    IncludeKind,
    IncludeLink,
    IncludePlanner,
    IncludeStep,
    IncludeStrategy,
    IncludeStrategyRegistry,
    LinkShape,
)
from .metadata import EntityCatalog
from .operators import SpecificationOperator
from .operators_memory import build_default_registry
from .pagination import CursorPage, Page
from .ports import IQueryable, ISpecification
from .repository import SpecificationRepository
from .specification import (
    IncludeBuilder,
    IncludeNode,
    Ordering,
    Projection,
    QuerySpecification,
    TrackingMode,
)

__all__ = [
    # Predicates
    "SpecificationOperator",
    "AttributeSpecification",
    "SpecificationFactory",
    "BaseSpecification",
    "AndSpecification",
    "OrSpecification",
    "NotSpecification",
    "ConstantSpecification",
    "all_of",
    "any_of",
    "match_all",
    "match_none",
    # Evaluator / strategy
    "MemoryOperator",
    "MemoryOperatorRegistry",
    "build_default_registry",
    # Query specifications
    "QuerySpecification",
    "IncludeBuilder",
    "IncludeNode",
    "Ordering",
    "Projection",
    "TrackingMode",
    # Filtering
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
    # Compilation
    "EntityCatalog",
    "QueryCompiler",
    "IncludeKind",
    "IncludeLink",
    "IncludePlanner",
    "IncludeStep",
    "IncludeStrategy",
    "IncludeStrategyRegistry",
    "LinkShape",
    # Execution
    "IQueryable",
    "ISpecification",
    "SpecificationRepository",
    "Page",
    "CursorPage",
    # Exceptions
    "SpecificationError",
    "ValidationError",
    "InvalidSpecificationError",
    "OperatorNotFoundError",
    "FieldNotFoundError",
    "IncludeChainError",
    "PagingNotEnabledError",
    "ProjectionError",
]
