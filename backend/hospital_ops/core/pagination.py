"""Page/page_size query handling for the in-memory notification log."""

import math
from dataclasses import dataclass
from typing import Sequence, TypeVar

from fastapi import Query

T = TypeVar("T")


@dataclass
class PaginationParams:
    page: int = 1
    page_size: int = 25

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def get_pagination(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(25, ge=1, le=100, description="Items per page"),
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


def paginate(items: Sequence[T], pagination: PaginationParams) -> tuple[list[T], dict]:
    """Cut one page out of ``items`` and describe it for the response meta."""
    total_count = len(items)
    page = list(items[pagination.offset : pagination.offset + pagination.page_size])
    meta = {
        "page": pagination.page,
        "page_size": pagination.page_size,
        "total_count": total_count,
        "total_pages": math.ceil(total_count / pagination.page_size) if total_count else 0,
    }
    return page, meta
