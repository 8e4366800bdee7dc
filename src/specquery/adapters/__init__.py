"""Queryable sources: an in-memory one and a SQLAlchemy 2.x async one."""

from .memory import InMemoryQueryable

__all__ = ["InMemoryQueryable"]
