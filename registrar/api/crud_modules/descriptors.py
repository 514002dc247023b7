from __future__ import annotations

from types import MappingProxyType

from registrar.models.academic_record import AcademicRecord
from registrar.models.attendance import Attendance
from registrar.models.course import Course
from registrar.models.department import Department
from registrar.models.program import Program
from registrar.models.user import User
from registrar.schemas.query import SortKey
from registrar.schemas.records import (
    AcademicRecordRecord,
    AttendanceRecord,
    CourseRecord,
    DepartmentRecord,
    ProgramRecord,
    UserRecord,
)
from registrar.schemas.resources import RelationSpec, ResourceDescriptor, ResourceRegistry

RESOURCE_ALIASES = {
    "academic": "academic_record",
    "academic_records": "academic_record",
    "users": "user",
    "courses": "course",
    "programs": "program",
    "departments": "department",
}


def _relation(local_field: str, target: str, *fields: str) -> RelationSpec:
    return RelationSpec(local_field=local_field, target_resource=target, projected_fields=frozenset(fields))


def build_registry() -> ResourceRegistry:
    descriptors = (
        ResourceDescriptor(
            name="user",
            model=User,
            label="User",
            write_schema=UserRecord,
            relations=(
                _relation("profile_data.department_id", "department", "name", "code"),
                _relation("profile_data.program_id", "program", "name", "program_code"),
            ),
            searchable_fields=frozenset({"username", "first_name", "last_name", "email", "user_code"}),
            owner_field="id",
            hidden_fields=frozenset({"password_hash"}),
            write_only_fields=frozenset({"password"}),
        ),
        ResourceDescriptor(
            name="department",
            model=Department,
            label="Department",
            write_schema=DepartmentRecord,
            searchable_fields=frozenset({"name", "description", "code"}),
        ),
        ResourceDescriptor(
            name="program",
            model=Program,
            label="Program",
            write_schema=ProgramRecord,
            relations=(_relation("department_id", "department", "name", "code"),),
            searchable_fields=frozenset({"name", "description", "program_code"}),
        ),
        ResourceDescriptor(
            name="course",
            model=Course,
            label="Course",
            write_schema=CourseRecord,
            relations=(
                _relation("program_ids", "program", "name", "program_code"),
                _relation("prerequisites", "course", "course_code", "title"),
            ),
            searchable_fields=frozenset({"course_code", "title", "description", "location"}),
        ),
        ResourceDescriptor(
            name="academic_record",
            model=AcademicRecord,
            label="AcademicRecord",
            write_schema=AcademicRecordRecord,
            relations=(
                _relation("student_id", "user", "username", "user_code", "first_name", "last_name"),
                _relation("course_id", "course", "course_code", "title", "credits"),
            ),
            searchable_fields=frozenset({"semester", "academic_year"}),
            owner_field="student_id",
        ),
        ResourceDescriptor(
            name="attendance",
            model=Attendance,
            label="Attendance",
            write_schema=AttendanceRecord,
            relations=(
                _relation("student_id", "user", "username", "first_name", "last_name", "user_code"),
                _relation("course_id", "course", "course_code", "title"),
            ),
            searchable_fields=frozenset({"notes"}),
            default_sort=SortKey(field="date"),
            owner_field="student_id",
        ),
    )
    return MappingProxyType({descriptor.name: descriptor for descriptor in descriptors})


def _normalize_resource_name(resource_name: str) -> str:
    raw = (resource_name or "").strip().replace("-", "_")
    chars: list[str] = []
    for index, ch in enumerate(raw):
        if ch.isupper() and index > 0 and raw[index - 1].isalnum() and raw[index - 1] != "_":
            chars.append("_")
        chars.append(ch.lower())
    normalized = "".join(chars)
    return RESOURCE_ALIASES.get(normalized, normalized)
