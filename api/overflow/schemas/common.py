"""Common shared schema types used across the API."""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: str
    detail: Optional[str] = None


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated list response.

    is_next is true iff more rows match than were skipped plus returned.
    """

    items: list[T]
    is_next: bool
    total: int
    page: int
    page_size: int
