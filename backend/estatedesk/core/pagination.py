"""
Offset pagination for list endpoints
"""
from dataclasses import dataclass
from typing import Any, Dict, List
import math

from sqlalchemy.orm import Query

MAX_PER_PAGE = 100


@dataclass
class Page:
    items: List[Any]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    def meta(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "current_page": self.page,
            "per_page": self.per_page,
            "last_page": self.last_page,
        }


def paginate(query: Query, page: int = 1, per_page: int = 20) -> Page:
    page = max(1, page or 1)
    per_page = min(max(1, per_page or 20), MAX_PER_PAGE)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return Page(items=items, total=total, page=page, per_page=per_page)
