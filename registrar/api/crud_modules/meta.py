from __future__ import annotations

from enum import Enum
from typing import Any, get_origin

from sqlalchemy import Enum as SAEnum
from sqlalchemy.sql.sqltypes import Boolean, Date, DateTime, Float, Integer, JSON, Numeric

from registrar.models.choices import WEEKDAYS
from registrar.schemas.resources import SYSTEM_FIELDS, ResourceDescriptor, ResourceRegistry
from registrar.services.field_access import READ, WRITE, FieldPolicy

from .access import _actor_role, _allowed_actions


class FieldKind(str, Enum):
    TEXT = "Text"
    NUMBER = "Number"
    DATE = "Date"
    SELECT = "Select"
    MULTI_SELECT = "MultiSelect"
    CHECKBOX = "Checkbox"


# Choices for list columns that are not backed by another resource.
LIST_FIELD_CHOICES = {("course", "day_of_week"): WEEKDAYS}


def _is_list_field(descriptor: ResourceDescriptor, name: str) -> bool:
    schema_field = descriptor.write_schema.model_fields.get(name)
    return schema_field is not None and get_origin(schema_field.annotation) is list


def _column_kind(descriptor: ResourceDescriptor, name: str, column: Any) -> FieldKind:
    col_type = column.type
    if isinstance(col_type, Boolean):
        return FieldKind.CHECKBOX
    if isinstance(col_type, SAEnum):
        return FieldKind.SELECT
    if isinstance(col_type, (Integer, Numeric, Float)):
        return FieldKind.NUMBER
    if isinstance(col_type, (Date, DateTime)):
        return FieldKind.DATE
    if isinstance(col_type, JSON) and _is_list_field(descriptor, name):
        return FieldKind.MULTI_SELECT
    return FieldKind.TEXT


def _choices(descriptor: ResourceDescriptor, name: str, column: Any) -> list[str] | None:
    if isinstance(column.type, SAEnum):
        return list(column.type.enums)
    choices = LIST_FIELD_CHOICES.get((descriptor.name, name))
    return list(choices) if choices else None


def _covers(paths: frozenset[str], name: str) -> bool:
    return any(path == name or path.startswith(f"{name}.") for path in paths)


def _fields_meta(descriptor: ResourceDescriptor, readable: frozenset[str], writable: frozenset[str]):
    relations = {relation.local_field: relation.target_resource for relation in descriptor.relations}
    out: list[dict[str, Any]] = []
    for name, column in descriptor.columns.items():
        if name in descriptor.hidden_fields:
            continue
        kind = _column_kind(descriptor, name, column)
        item: dict[str, Any] = {
            "name": name,
            "kind": kind.value,
            "readable": _covers(readable, name),
            "writable": name not in SYSTEM_FIELDS and _covers(writable, name),
            "searchable": name in descriptor.searchable_fields,
        }
        choices = _choices(descriptor, name, column)
        if choices is not None:
            item["choices"] = choices
        if name in relations:
            item["relation"] = relations[name]
        out.append(item)
    for name in sorted(descriptor.write_only_fields):
        out.append(
            {
                "name": name,
                "kind": FieldKind.TEXT.value,
                "readable": False,
                "writable": name in writable,
                "searchable": False,
            }
        )
    return out


def resources_meta(registry: ResourceRegistry, policy: FieldPolicy, actor: dict) -> list[dict[str, Any]]:
    """Describe each resource the actor may list, with per-field access for the actor's own records."""
    role = _actor_role(actor)
    out: list[dict[str, Any]] = []
    for name, descriptor in registry.items():
        actions = _allowed_actions(role, name)
        if "list" not in actions:
            continue
        readable = policy.allowed_fields(role, name, READ, own=True)
        writable = policy.allowed_fields(role, name, WRITE, own=True)
        out.append(
            {
                "name": name,
                "label": descriptor.label,
                "actions": sorted(actions),
                "searchable_fields": sorted(descriptor.searchable_fields),
                "default_sort": {
                    "field": descriptor.default_sort.field,
                    "direction": descriptor.default_sort.direction,
                },
                "fields": _fields_meta(descriptor, readable, writable),
            }
        )
    return out
