import math
from typing import Callable, Optional, Tuple

from fastapi import Query

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10


def page_params(
    page: int = Query(DEFAULT_PAGE, ge=1),
    pageSize: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
) -> Tuple[int, int]:
    return page, pageSize


def envelope(items: list, total_items: int, page: int, page_size: int) -> dict:
    return {
        "items": items,
        "totalItems": total_items,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total_items / page_size),
    }


def paginate(query, page: int = DEFAULT_PAGE, page_size: int = DEFAULT_PAGE_SIZE,
             transform: Optional[Callable] = None) -> dict:
    """Đếm tổng rồi cắt trang một SQLAlchemy query, trả về envelope phân trang."""
    total_items = query.order_by(None).count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    if transform:
        rows = [transform(row) for row in rows]
    return envelope(rows, total_items, page, page_size)
