"""Pagination query parameters shared by list endpoints.

Out-of-range values are a RequestError (400), not FastAPI's 422, so the
checks live in Pagination.validate rather than in Query(ge=..., le=...).
"""

from fastapi import Query

from foxboard.schemas.common import Pagination


def get_pagination(
    page: int = Query(1, description="1-based page number"),
    count: int = Query(50, description="Items per page, 1-200"),
) -> Pagination:
    return Pagination(page=page, count=count).validate()
