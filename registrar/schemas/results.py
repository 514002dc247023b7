"""Outcome types shared by the CRUD handlers and the HTTP layer."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ErrorKind(str, Enum):
    BAD_REQUEST = "BadRequest"
    VALIDATION_FAILED = "ValidationFailed"
    DUPLICATE_VALUE = "DuplicateValue"
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    CANCELLED = "Cancelled"
    INTERNAL = "Internal"


HTTP_STATUS_BY_KIND = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.DUPLICATE_VALUE: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    # nginx convention for "client closed request"
    ErrorKind.CANCELLED: 499,
    ErrorKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class Pagination:
    total: int
    page: int
    limit: int
    pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, *, total: int, page: int, limit: int) -> "Pagination":
        pages = math.ceil(total / limit) if limit > 0 else 0
        return cls(total=total, page=page, limit=limit, pages=pages, has_next=page < pages, has_prev=page > 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


@dataclass(frozen=True)
class Success:
    data: Any = None
    meta: Pagination | None = None
    message: str | None = None
    status_code: int = 200

    ok = True

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": True}
        if self.message:
            body["message"] = self.message
        if self.meta is not None:
            body["count"] = len(self.data or [])
            body["pagination"] = self.meta.to_dict()
        if self.data is not None:
            body["data"] = self.data
        return body


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    error: str
    detail: str | list[str] | None = None

    ok = False

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.error}
        if self.detail is not None:
            body["details"] = self.detail
        return body


CrudResult = Union[Success, Failure]
