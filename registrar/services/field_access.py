"""Role-based field allow-lists for reading and writing resources.

Paths are either a top-level field (``email``) or one level into a JSON
object (``profile_data.contact_phone``). Everything not listed is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Literal, Mapping

from registrar.schemas.resources import ResourceRegistry

READ = "read"
WRITE = "write"
Action = Literal["read", "write"]

USER_DIRECTORY_FIELDS = frozenset({"id", "user_code", "username", "first_name", "last_name", "role"})
TEACHER_USER_DIRECTORY_FIELDS = USER_DIRECTORY_FIELDS | {
    "email",
    "status",
    "profile_data.department_id",
    "profile_data.program_id",
    "profile_data.year",
    "profile_data.enrollment_status",
}
TEACHER_OWN_PROFILE_FIELDS = frozenset(
    {"email", "username", "first_name", "last_name", "profile_data.contact_phone", "profile_data.bio"}
)
STUDENT_OWN_PROFILE_FIELDS = frozenset(
    {
        "email",
        "username",
        "first_name",
        "last_name",
        "profile_data.phone",
        "profile_data.address",
        "profile_data.date_of_birth",
        "profile_data.gender",
    }
)
GRADING_FIELDS = frozenset(
    {"student_id", "course_id", "semester", "academic_year", "registration_status", "grade"}
)
ATTENDANCE_FIELDS = frozenset({"student_id", "course_id", "date", "status", "notes"})
CATALOGUE_RESOURCES = ("department", "program", "course")


@dataclass(frozen=True)
class FieldPermission:
    role: str
    resource: str
    action: Action
    own_only: bool
    allowed_fields: frozenset[str]


class FieldPolicy:
    """Static permission table, indexed by ``(role, resource, action)``."""

    def __init__(self, permissions: Iterable[FieldPermission]):
        table: dict[tuple[str, str, str], list[FieldPermission]] = {}
        for permission in permissions:
            table.setdefault((permission.role, permission.resource, permission.action), []).append(permission)
        self._table = MappingProxyType({key: tuple(entries) for key, entries in table.items()})

    def entries(self, role: str, resource: str, action: Action) -> tuple[FieldPermission, ...]:
        return self._table.get((role, resource, action), ())

    def has_blanket(self, role: str, resource: str, action: Action) -> bool:
        return any(not entry.own_only for entry in self.entries(role, resource, action))

    def allowed_fields(self, role: str, resource: str, action: Action, own: bool) -> frozenset[str]:
        """Fields ``role`` may ``action`` on a record; ``own`` is whether the record is the actor's.

        Blanket entries always apply; own-only entries only when ``own`` is true.
        """
        fields: set[str] = set()
        for entry in self.entries(role, resource, action):
            if not entry.own_only or own:
                fields |= entry.allowed_fields
        return frozenset(fields)


def filter_by_allowed(data: Mapping[str, Any] | None, allowed: Iterable[str]) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        return {}
    allowed = set(allowed)
    result: dict[str, Any] = {key: data[key] for key in allowed if "." not in key and key in data}
    for path in allowed:
        parent, dot, child = path.partition(".")
        if not dot or parent in allowed:
            continue
        source = data.get(parent)
        if isinstance(source, Mapping) and child in source:
            result.setdefault(parent, {})[child] = source[child]
    return result


def _grant(role: str, resource: str, action: Action, fields: Iterable[str], *, own_only: bool = False):
    return FieldPermission(role, resource, action, own_only, frozenset(fields))


def build_field_policy(registry: ResourceRegistry) -> FieldPolicy:
    permissions: list[FieldPermission] = []
    for name, descriptor in registry.items():
        permissions.append(_grant("admin", name, READ, descriptor.readable_fields))
        permissions.append(_grant("admin", name, WRITE, descriptor.writable_fields))

    users = registry["user"]
    permissions += [
        _grant("teacher", "user", READ, TEACHER_USER_DIRECTORY_FIELDS),
        _grant("teacher", "user", READ, users.readable_fields, own_only=True),
        _grant("teacher", "user", WRITE, TEACHER_OWN_PROFILE_FIELDS, own_only=True),
        _grant("student", "user", READ, USER_DIRECTORY_FIELDS),
        _grant("student", "user", READ, users.readable_fields, own_only=True),
        _grant("student", "user", WRITE, STUDENT_OWN_PROFILE_FIELDS, own_only=True),
    ]
    for name in CATALOGUE_RESOURCES:
        for role in ("teacher", "student"):
            permissions.append(_grant(role, name, READ, registry[name].readable_fields))

    records = registry["academic_record"]
    attendance = registry["attendance"]
    permissions += [
        _grant("teacher", "academic_record", READ, records.readable_fields),
        _grant("teacher", "academic_record", WRITE, GRADING_FIELDS),
        _grant("student", "academic_record", READ, records.readable_fields, own_only=True),
        _grant("teacher", "attendance", READ, attendance.readable_fields),
        _grant("teacher", "attendance", WRITE, ATTENDANCE_FIELDS),
        _grant("student", "attendance", READ, attendance.readable_fields, own_only=True),
    ]
    return FieldPolicy(permissions)
