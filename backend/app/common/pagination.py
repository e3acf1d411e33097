"""Page-based pagination helpers for list endpoints."""

from __future__ import annotations

import math
from typing import Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel, Field

from app.core.app_exceptions import InvalidArgumentError
from app.core.config import settings

T = TypeVar("T")


class PaginationParams(BaseModel):
    """1-based page number and page size."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PageMeta(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @classmethod
    def build(cls, params: PaginationParams, total: int) -> PageMeta:
        return cls(
            current_page=params.page,
            total_pages=math.ceil(total / params.limit) if total else 0,
            total_items=total,
            items_per_page=params.limit,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    """Page of items plus pagination metadata."""

    items: list[T]
    pagination: PageMeta


def pagination_params(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    limit: int | None = Query(None, ge=1, description="Items per page"),
) -> PaginationParams:
    """Dependency for page-based pagination."""
    if limit is None:
        limit = settings.HISTORY_DEFAULT_PAGE_SIZE
    if limit > settings.HISTORY_MAX_PAGE_SIZE:
        raise InvalidArgumentError(
            f"limit must be <= {settings.HISTORY_MAX_PAGE_SIZE}",
            details={"limit": limit},
        )
    return PaginationParams(page=page, limit=limit)
