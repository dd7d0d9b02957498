"""API Dependencies"""

from typing import Optional

from fastapi import Query

from app.database import get_db  # noqa: F401  (re-exported for endpoints)
from app.utils.pagination import PageParams


def get_page_params(
    page: Optional[int] = Query(1, description="1-based page number"),
    limit: Optional[int] = Query(10, description="Items per page"),
) -> PageParams:
    """
    Pagination query parameters.

    Non-positive or missing values fall back to page 1 / 10 items, as list
    clients send whatever their table widget holds.
    """
    return PageParams.normalize(page, limit)


def customer_id_query(
    customer_id: str = Query(..., min_length=1, description="Tenant partition key"),
) -> str:
    """Required tenant filter on every read model"""
    return customer_id.strip()
