"""Page envelope shared by listing use cases."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar
import math

T = TypeVar("T")

MAX_PAGE_SIZE = 100


@dataclass
class Page(Generic[T]):
    content: list[T]
    number: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size) if self.size else 0

    @property
    def first(self) -> bool:
        return self.number == 0

    @property
    def last(self) -> bool:
        return self.number >= max(self.total_pages - 1, 0)


def page_bounds(page: int, size: int) -> tuple[int, int, int, int]:
    """Clamp page/size and return (page, size, offset, limit)."""
    page = max(int(page or 0), 0)
    size = min(max(int(size or 10), 1), MAX_PAGE_SIZE)
    return page, size, page * size, size
