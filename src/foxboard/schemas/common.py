"""Shared response shapes: paginated lists and plain success flags."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

from foxboard.errors import RequestError

T = TypeVar("T")

MAX_PAGE_COUNT = 200


@dataclass(frozen=True)
class Pagination:
    """1-based page number and page size."""

    page: int = 1
    count: int = 50

    def validate(self) -> "Pagination":
        if self.page <= 0 or self.count <= 0 or self.count > MAX_PAGE_COUNT:
            raise RequestError("pagination invalid")
        return self

    @property
    def offset(self) -> int:
        return self.count * (self.page - 1)


class Page(BaseModel, Generic[T]):
    page: int
    count: int
    total: int
    items: list[T]

    @classmethod
    def build(cls, items: list, pag: Pagination, total: int) -> "Page":
        return cls(page=pag.page, count=pag.count, total=total, items=items)


class SuccessRead(BaseModel):
    success: bool
