"""
Page/limit pagination and whitelisted sorting for list endpoints.
"""
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from django.db.models import QuerySet
from ninja import Schema

from .exceptions import ValidationFailed, ErrorCode

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PageMeta(Schema):
    """Pagination fields shared by every list response."""
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool


def page_request(page: Optional[int] = 1, limit: Optional[int] = DEFAULT_PAGE_SIZE) -> PageRequest:
    """
    Validate page/limit query parameters.

    Page must be >= 1. Limit must be >= 1 and is clamped to MAX_PAGE_SIZE.
    """
    page = 1 if page is None else page
    limit = DEFAULT_PAGE_SIZE if limit is None else limit

    if page < 1:
        raise ValidationFailed(
            "Page must be greater than 0",
            code=ErrorCode.INVALID_INPUT,
            details={"field": "page", "value": page},
        )
    if limit < 1:
        raise ValidationFailed(
            "Limit must be greater than 0",
            code=ErrorCode.INVALID_INPUT,
            details={"field": "limit", "value": limit},
        )
    return PageRequest(page=page, limit=min(limit, MAX_PAGE_SIZE))


def resolve_ordering(
    sort_by: Optional[str],
    sort_order: Optional[str],
    allowed: Iterable[str],
    default: str = 'created_at',
) -> List[str]:
    """
    Translate sort_by/sort_order into an order_by() argument list.

    Only fields listed in `allowed` may be used. The primary key is appended
    as a tiebreaker so pages are stable.
    """
    field = sort_by or default
    if field not in allowed:
        raise ValidationFailed(
            f"Invalid sort field: {field}",
            code=ErrorCode.INVALID_INPUT,
            details={"field": "sort_by", "allowed": sorted(allowed)},
        )

    direction = (sort_order or 'desc').lower()
    if direction not in ('asc', 'desc'):
        raise ValidationFailed(
            "Sort order must be asc or desc",
            code=ErrorCode.INVALID_INPUT,
            details={"field": "sort_order", "value": sort_order},
        )

    prefix = '-' if direction == 'desc' else ''
    return [f"{prefix}{field}", f"{prefix}id"]


def paginate(queryset: QuerySet, request: PageRequest) -> Tuple[list, int]:
    """Return (items on the requested page, total count)."""
    total = queryset.count()
    items = list(queryset[request.offset:request.offset + request.limit])
    return items, total


def page_meta(total: int, request: PageRequest) -> dict:
    return {
        "total": total,
        "page": request.page,
        "limit": request.limit,
        "total_pages": math.ceil(total / request.limit) if total else 0,
        "has_more": request.page * request.limit < total,
    }
