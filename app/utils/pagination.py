"""Pagination and list-filter helpers for read models.

Statements are composed from SQLAlchemy expressions; LIMIT and OFFSET are
applied with ``.limit()`` / ``.offset()`` so they travel as bound parameters.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

MAX_LIMIT = 1000


@dataclass(frozen=True)
class PageParams:
    page: int = 1
    limit: int = 10

    @classmethod
    def normalize(cls, page: Optional[int], limit: Optional[int]) -> "PageParams":
        page = page if page and page > 0 else 1
        limit = limit if limit and limit > 0 else 10
        return cls(page=page, limit=min(limit, MAX_LIMIT))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def pagination_meta(params: PageParams, total: int) -> Dict[str, Any]:
    return {
        "current_page": params.page,
        "per_page": params.limit,
        "total": total,
        "total_pages": math.ceil(total / params.limit) if params.limit else 0,
        "has_next": params.page * params.limit < total,
        "has_prev": params.page > 1,
    }


def keyword_filter(keyword: Optional[str], *columns):
    """ILIKE %keyword% over any of ``columns``; None when there is no keyword."""
    if keyword is None or not keyword.strip():
        return None
    term = f"%{keyword.strip()}%"
    return or_(*[column.ilike(term) for column in columns])


async def paginate(db: AsyncSession, stmt: Select, params: PageParams) -> Tuple[List[Any], int]:
    """Run ``stmt`` for one page and count the unpaged result."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(stmt.limit(params.limit).offset(params.offset))
    return list(result.mappings().all()), total
