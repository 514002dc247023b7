from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, List, Literal, Optional

Op = Literal["eq", "ne", "gt", "gte", "lt", "lte", "in"]
Dir = Literal["asc", "desc"]

FILTER_OPERATORS = frozenset({"eq", "ne", "gt", "gte", "lt", "lte", "in"})
RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields", "search"})

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 25
MAX_LIMIT = 100
# keeps (page - 1) * limit inside a signed 64-bit OFFSET
MAX_PAGE = (2**63 - 1) // MAX_LIMIT


class FilterClause(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    op: Op = "eq"
    value: Any

    @model_validator(mode="after")
    def _field_is_not_reserved(self):
        if self.field in RESERVED_PARAMS:
            raise ValueError(f'"{self.field}" is a reserved query parameter')
        return self


class SortKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    direction: Dir = "asc"


class QuerySpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    filters: List[FilterClause] = []
    search: Optional[str] = None
    sort: List[SortKey] = []
    projection: Optional[frozenset[str]] = None
    page: int = Field(default=DEFAULT_PAGE, ge=1, le=MAX_PAGE)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
