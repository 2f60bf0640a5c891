from typing import Optional
from fastapi import Query
from koperasi.core.config import settings


class Pagination:
    """Page/limit pair resolved from query parameters."""

    def __init__(self, page: int, limit: int):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def get_pagination(
    page: int = Query(1, description="Page number, starting at 1"),
    limit: Optional[int] = Query(None, description="Page size (1-100)")
) -> Pagination:
    """Resolve pagination leniently: out-of-range values fall back to defaults."""
    if page < 1:
        page = 1
    if limit is None or limit < 1 or limit > settings.MAX_PAGE_SIZE:
        limit = settings.DEFAULT_PAGE_SIZE
    return Pagination(page=page, limit=limit)
