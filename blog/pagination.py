from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

PAGE_SIZE = 10
WINDOW_RADIUS = 2
ELLIPSIS = "…"

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    number: int
    items: list[T]
    total_pages: int

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    if page_size < 1:
        raise ValueError("page_size must be positive")
    if count < 0:
        raise ValueError("count must not be negative")
    return max(1, -(-count // page_size))


def page_items(items: Sequence[T], number: int, page_size: int = PAGE_SIZE) -> list[T]:
    if number < 1:
        raise ValueError("page numbers start at 1")
    start = (number - 1) * page_size
    return list(items[start : start + page_size])


def paginate(items: Sequence[T], page_size: int = PAGE_SIZE) -> list[Page[T]]:
    total = total_pages(len(items), page_size)
    return [
        Page(number=number, items=page_items(items, number, page_size), total_pages=total)
        for number in range(1, total + 1)
    ]


def page_window(current: int, total: int) -> list[int | str]:
    """Page numbers to show around ``current``, with ``ELLIPSIS`` for gaps.

    >>> page_window(5, 10)
    [1, '…', 3, 4, 5, 6, 7, '…', 10]
    """
    if total <= 1:
        return [1]
    left = max(2, current - WINDOW_RADIUS)
    right = min(total - 1, current + WINDOW_RADIUS)
    window: list[int | str] = [1]
    if left > 2:
        window.append(ELLIPSIS)
    window.extend(range(left, right + 1))
    if right < total - 1:
        window.append(ELLIPSIS)
    window.append(total)
    return window
