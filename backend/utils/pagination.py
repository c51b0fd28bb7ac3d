# backend/utils/pagination.py
import math
from typing import Any, List, Tuple

from sqlalchemy.orm import Query

from schemas.common import PageMeta


def build_page_meta(page: int, limit: int, total: int) -> PageMeta:
    total_pages = math.ceil(total / limit) if limit else 0
    return PageMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def paginate(query: Query, page: int, limit: int) -> Tuple[List[Any], PageMeta]:
    """Apply offset/limit to an already ordered query and count the full result set."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, build_page_meta(page, limit, total)
