"""Local page slicing."""

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

_DEFAULT_ROWS_PER_PAGE = 12
_DEFAULT_ROWS_PER_PAGE_OPTIONS: tuple[int, ...] = (5, 10, 12, 25, 50, 100)


def slice_page(rows: Sequence[T], page: int, rows_per_page: int) -> list[T]:
    """Return ``rows[page * rows_per_page : (page + 1) * rows_per_page]``.

    An out-of-range or negative page, or a non-positive page size, yields an
    empty list instead of raising.
    """
    if page < 0 or rows_per_page <= 0:
        return []
    start = page * rows_per_page
    if start >= len(rows):
        return []
    return list(rows[start : start + rows_per_page])


def total_pages(total_count: int, rows_per_page: int) -> int:
    if total_count <= 0 or rows_per_page <= 0:
        return 0
    return -(-total_count // rows_per_page)


def page_rows(rows: Sequence[T], rows_per_page: int) -> list[list[T]]:
    """Split *rows* into consecutive pages."""
    return [
        slice_page(rows, page, rows_per_page)
        for page in range(total_pages(len(rows), rows_per_page))
    ]
