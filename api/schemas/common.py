"""Common Pydantic schemas shared across the API."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class PaginationMeta(BaseModel):
    total: int = Field(ge=0, description="Total number of items matching the filter")
    page: int = Field(ge=1, description="Current page number")
    limit: int = Field(ge=1, le=100, description="Items per page")
    pages: int = Field(ge=0, description="Total number of pages")


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated response wrapper."""

    items: list[T] = Field(description="List of items for this page")
    pagination: PaginationMeta

    @classmethod
    def create(cls, items: list[T], total: int, page: int, limit: int) -> "PaginatedResponse[T]":
        """Create a paginated response."""
        return cls(
            items=items,
            pagination=PaginationMeta(
                total=total,
                page=page,
                limit=limit,
                pages=(total + limit - 1) // limit,
            ),
        )


class TimestampMixin(BaseModel):
    """Mixin for timestamp fields."""

    created_at: datetime = Field(description="Timestamp when the resource was created")
    updated_at: datetime = Field(description="Timestamp when the resource was last updated")


class MessageResponse(BaseModel):
    message: str
