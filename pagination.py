import math

from fastapi import Query


class PageParams:
    """Query parameters shared by the paginated list routes."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=1000),
    ):
        self.page = page
        self.limit = limit

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def apply(self, query):
        return query.offset(self.skip).limit(self.limit)

    def summary(self, total: int) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "pages": math.ceil(total / self.limit),
        }
