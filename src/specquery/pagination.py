"""Result pages returned by the repository."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def total_pages(total_count: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return math.ceil(total_count / page_size)


@dataclass(frozen=True)
class Page(Generic[T]):
    """One offset page plus the unpaged total."""

    items: list[T]
    page_index: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_count, self.page_size)

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    @property
    def has_next(self) -> bool:
        return self.page_index + 1 < self.total_pages


@dataclass(frozen=True)
class CursorPage(Generic[T]):
    """
    One keyset page.

    ``last_cursor`` is the key value to pass as ``after`` for the next
    page; it is ``None`` on an empty page.
    """

    items: list[T]
    has_next: bool
    first_cursor: Any = None
    last_cursor: Any = None
    size: int = 0
