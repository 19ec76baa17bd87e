"""Response envelope models.

Every successful response is ``{"data": ...}`` (lists add ``"meta"``) and
every error is ``{"error": {"code", "message", "details"}}``.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, computed_field

T = TypeVar("T")


class PaginationMeta(BaseModel):
    """Pagination metadata for collections.

    Attributes:
        total: Total number of items across all pages.
        page: Current page number (1-indexed).
        per_page: Number of items per page.
    """

    total: int
    page: int
    per_page: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        """Number of pages needed for ``total`` items (0 when empty)."""
        if self.total == 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page


class DataResponse(BaseModel, Generic[T]):
    """Envelope for a single resource.

    Usage:
        @router.get("/games/{game_id}")
        async def get_game(...) -> DataResponse[GameStatus]:
            return DataResponse(data=status)
    """

    data: T


class ListResponse(BaseModel, Generic[T]):
    """Envelope for a page of resources plus pagination meta."""

    data: list[T]
    meta: PaginationMeta


class ErrorDetail(BaseModel):
    """Error body.

    Attributes:
        code: Machine-readable error code (e.g., "VERIFICATION_LOCKED").
        message: Human-readable error message.
        details: Optional structured data (attempts remaining, retry-after).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail
