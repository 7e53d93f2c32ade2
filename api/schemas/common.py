"""Common Pydantic schemas shared across the API."""

from datetime import datetime
from pydantic import BaseModel, Field


class TimestampMixin(BaseModel):
    """Mixin for timestamp fields."""

    created_at: datetime = Field(description="Timestamp when the resource was created")
    updated_at: datetime = Field(description="Timestamp when the resource was last updated")


class PageMeta(BaseModel):
    """Pagination info returned with list responses."""

    total: int = Field(ge=0, description="Total number of items across all pages")
    page: int = Field(ge=1, description="Current page number")
    limit: int = Field(ge=1, le=100, description="Items per page")
    total_pages: int = Field(ge=0, description="Total number of pages")


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str
