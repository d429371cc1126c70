"""Offset pagination shared by every listing.

A page is requested by a 1-based page number and a page size. The caller
learns whether another page exists by comparing the total number of matching
rows with the rows already consumed (skipped + returned on this page).
"""

from typing import Generic, NamedTuple, TypeVar

T = TypeVar("T")


class PageResult(NamedTuple, Generic[T]):
    items: list[T]
    is_next: bool
    total: int


def skip_amount(page: int, page_size: int) -> int:
    """Rows to skip before the requested page. Pages below 1 are treated as 1."""
    return (max(page, 1) - 1) * page_size


def has_next(total: int, skip: int, returned: int) -> bool:
    """True iff rows remain after this page."""
    return total > skip + returned
