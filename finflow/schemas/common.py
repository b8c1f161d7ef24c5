from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class PaginationInfo(BaseModel):
    """Pagination metadata attached to list responses."""

    page: int
    page_size: int
    total: int
    total_pages: int


class PageParams(BaseModel):
    """Common paging and ordering query parameters."""

    page: int = Field(default=1, ge=1)
    page_size: int | None = Field(default=None, ge=1)
    sort_order: Literal["asc", "desc"] = "desc"


class StatusChangePayload(BaseModel):
    """Request body for a status change.

    Payment fields are only used when moving a salary to ``paid``.
    """

    status: str = Field(min_length=1, max_length=50)
    transaction_hash: str | None = Field(default=None, max_length=255)
    payment_network: str | None = Field(default=None, max_length=50)
    payment_address: str | None = Field(default=None, max_length=255)
    note: str | None = Field(default=None, max_length=1000)

    def details(self) -> dict[str, str]:
        """Transition details that were actually supplied."""
        return self.model_dump(exclude={"status"}, exclude_none=True)
