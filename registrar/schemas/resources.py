from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.sql.sqltypes import JSON

from registrar.schemas.query import SortKey

SYSTEM_FIELDS = frozenset({"id", "created_at", "updated_at"})


@dataclass(frozen=True)
class RelationSpec:
    """Expand ``local_field`` (an id, or a list of ids) into the target's ``projected_fields``.

    ``local_field`` may point one level into a JSON column, e.g. ``profile_data.program_id``.
    """

    local_field: str
    target_resource: str
    projected_fields: frozenset[str]


@dataclass(frozen=True)
class ResourceDescriptor:
    name: str
    model: type
    label: str
    write_schema: type
    relations: tuple[RelationSpec, ...] = ()
    searchable_fields: frozenset[str] = frozenset()
    default_sort: SortKey = field(default_factory=lambda: SortKey(field="created_at"))
    owner_field: str | None = None
    hidden_fields: frozenset[str] = frozenset()
    write_only_fields: frozenset[str] = frozenset()

    @property
    def columns(self) -> dict[str, Any]:
        return {column.key: column for column in sa_inspect(self.model).columns}

    @property
    def json_fields(self) -> frozenset[str]:
        return frozenset(name for name, column in self.columns.items() if isinstance(column.type, JSON))

    @property
    def readable_fields(self) -> frozenset[str]:
        return frozenset(self.columns) - self.hidden_fields

    @property
    def writable_fields(self) -> frozenset[str]:
        return (frozenset(self.columns) - SYSTEM_FIELDS - self.hidden_fields) | self.write_only_fields


ResourceRegistry = Mapping[str, ResourceDescriptor]
