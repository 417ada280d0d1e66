"""
Offset/limit paging shared by every list route.
"""

from dataclasses import dataclass

from fastapi import Query

MAX_LIMIT = 100


@dataclass
class Page:
    page:  int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def describe(self, total) -> dict:
        return {"total": int(total or 0), "page": self.page, "limit": self.limit}


def get_page(
    page:  int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_LIMIT),
) -> Page:
    return Page(page=page, limit=limit)
