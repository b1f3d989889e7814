"""
core/pagination.py -- Page / offset / count arithmetic shared by list endpoints.

paginate() is pure: the same (page, page_size, count) always yields the same
Pagination. Route handlers call it twice per listing -- once before the query
to get the offset/limit, once after counting to fill page_count.

Missing or zero page / page_size fall back to the defaults. Negative values
are rejected with ValidationError; they would otherwise produce a negative
SQL OFFSET.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from core.errors import ValidationError

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class Pagination:
    page: int
    page_count: int
    page_size: int
    count: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


def resolve_page(
    page: Optional[int],
    page_size: Optional[int],
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> tuple[int, int]:
    """Apply defaults and bounds to raw page / page_size query values."""
    page = page or DEFAULT_PAGE
    page_size = page_size or default_page_size
    if page < 1:
        raise ValidationError("page must be a positive integer.", {"page": page})
    if page_size < 1:
        raise ValidationError("pageSize must be a positive integer.", {"pageSize": page_size})
    return page, page_size


def paginate(
    page: Optional[int],
    page_size: Optional[int],
    count: int,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> Pagination:
    """Build pagination metadata for a listing of `count` total records.

    >>> paginate(2, 20, 12)
    Pagination(page=2, page_count=1, page_size=20, count=12)
    """
    page, page_size = resolve_page(page, page_size, default_page_size)
    return Pagination(
        page=page,
        page_count=math.ceil(count / page_size),
        page_size=page_size,
        count=count,
    )
