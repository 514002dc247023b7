"""Store-level validation for persisted resources.

Each schema validates a *complete* record (create payloads, or the merged
record on update) and reports problems as human-readable messages, one per
violated constraint.
"""

from __future__ import annotations

import re
import uuid
from datetime import date as date_type
from datetime import datetime
from typing import Any, ClassVar, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator

from registrar.models.choices import (
    ATTENDANCE_STATUSES,
    DEGREE_LEVELS,
    ENROLLMENT_STATUSES,
    GENDERS,
    LETTER_GRADES,
    PROGRAM_STATUSES,
    REGISTRATION_STATUSES,
    TEACHER_STATUSES,
    USER_CODE_PREFIXES,
    USER_ROLES,
    USER_STATUSES,
    WEEKDAYS,
)
from registrar.services.user_codes import validate_user_code

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
ACADEMIC_YEAR_RE = re.compile(r"^\d{4}-\d{4}$")


class RecordValidationError(ValueError):
    def __init__(self, messages: Iterable[str]):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


def _error_messages(exc: ValidationError, required_messages: dict[str, str], prefix: str = "") -> list[str]:
    messages: list[str] = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()))
        if prefix:
            field = f"{prefix}.{field}" if field else prefix
        if err.get("type") == "missing":
            key = field[len(prefix) + 1 :] if prefix else field
            message = required_messages.get(key) or f"{field} is required"
        elif err.get("type") == "value_error":
            message = str(err.get("msg") or "").removeprefix("Value error, ")
        else:
            message = f"{field}: {err.get('msg')}"
        if message not in messages:
            messages.append(message)
    return messages


def _choice(value: str, choices: Iterable[str], label: str) -> str:
    if value not in choices:
        raise ValueError(f"{value} is not a valid {label}")
    return value


def _bounded(value, *, low=None, high=None, low_message: str = "", high_message: str = ""):
    if value is None:
        return value
    if low is not None and value < low:
        raise ValueError(low_message)
    if high is not None and value > high:
        raise ValueError(high_message)
    return value


class RecordSchema(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    required_messages: ClassVar[dict[str, str]] = {}

    @field_validator("*", mode="after")
    @classmethod
    def _required_strings_not_blank(cls, value, info: ValidationInfo):
        if isinstance(value, str) and not value and info.field_name in cls.required_messages:
            raise ValueError(cls.required_messages[info.field_name])
        return value

    def finalize(self) -> list[str]:
        """Cross-field checks run after field validation; may normalize nested JSON."""
        return []

    def storage_values(self, json_fields: Iterable[str]) -> dict[str, Any]:
        json_fields = set(json_fields)
        python_values = self.model_dump()
        json_values = self.model_dump(mode="json")
        return {key: json_values[key] if key in json_fields else value for key, value in python_values.items()}


def _nested_problems(schema: type[RecordSchema], data: Any, prefix: str) -> tuple[list[str], RecordSchema | None]:
    if not isinstance(data, dict):
        return [f"{prefix} must be an object"], None
    try:
        nested = schema.model_validate({k: v for k, v in data.items() if v is not None})
    except ValidationError as exc:
        return _error_messages(exc, schema.required_messages, prefix=prefix), None
    return nested.finalize(), nested


class TeacherProfile(RecordSchema):
    required_messages = {"contact_phone": "Contact phone is required for teachers"}

    contact_phone: str
    bio: Optional[str] = None
    status: str = "active"

    @field_validator("status")
    @classmethod
    def _status(cls, value: str) -> str:
        return _choice(value, TEACHER_STATUSES, "teacher status")


class StudentProfile(RecordSchema):
    required_messages = {
        "enrollment_status": "Enrollment status is required",
        "department_id": "Department is required for students",
        "program_id": "Program is required for students",
        "year": "Year is required",
    }

    date_of_birth: Optional[date_type] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    enrollment_status: str
    department_id: uuid.UUID
    program_id: uuid.UUID
    year: int

    @field_validator("gender")
    @classmethod
    def _gender(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _choice(value, GENDERS, "gender")

    @field_validator("enrollment_status")
    @classmethod
    def _enrollment_status(cls, value: str) -> str:
        return _choice(value, ENROLLMENT_STATUSES, "enrollment status")

    @field_validator("year")
    @classmethod
    def _year(cls, value: int) -> int:
        return _bounded(value, low=1, low_message="Year must be at least 1")


class UserRecord(RecordSchema):
    required_messages = {
        "user_code": "User ID is required",
        "username": "Username is required",
        "email": "Email is required",
        "password_hash": "Password is required",
        "role": "Role is required",
    }

    user_code: str
    username: str
    email: str
    password_hash: str
    role: str
    status: str = "active"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    last_login: Optional[datetime] = None
    profile_data: Optional[dict[str, Any]] = None

    @field_validator("username")
    @classmethod
    def _username(cls, value: str) -> str:
        if value and len(value) < 3:
            raise ValueError("Username must be at least 3 characters long")
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.lower()
        if value and not EMAIL_RE.fullmatch(value):
            raise ValueError(f"{value} is not a valid email address!")
        return value

    @field_validator("role")
    @classmethod
    def _role(cls, value: str) -> str:
        return _choice(value, USER_ROLES, "role")

    @field_validator("status")
    @classmethod
    def _status(cls, value: str) -> str:
        return _choice(value, USER_STATUSES, "status")

    def finalize(self) -> list[str]:
        problems: list[str] = []
        prefix = USER_CODE_PREFIXES[self.role]
        if not re.fullmatch(rf"{prefix}\d{{7}}", self.user_code):
            problems.append(
                f"{self.user_code} is not a valid User ID format! "
                "Should be (A/T/S)+7digits based on role (6 sequential digits + 1 checksum digit)"
            )
        elif not validate_user_code(self.user_code):
            problems.append(f"{self.user_code} has an invalid checksum digit")
        if self.role == "admin":
            return problems
        if not self.first_name:
            problems.append("First name is required for students and teachers")
        if not self.last_name:
            problems.append("Last name is required for students and teachers")
        if not self.profile_data:
            problems.append("Profile data is required for students and teachers")
            return problems
        profile_schema = TeacherProfile if self.role == "teacher" else StudentProfile
        profile_problems, profile = _nested_problems(profile_schema, self.profile_data, "profile_data")
        problems.extend(profile_problems)
        if profile is not None and not profile_problems:
            self.profile_data = profile.model_dump(mode="json", exclude_none=True)
        return problems


class DepartmentRecord(RecordSchema):
    required_messages = {"code": "Department code is required", "name": "Department name is required"}

    code: str
    name: str
    description: Optional[str] = None

    @field_validator("code")
    @classmethod
    def _code(cls, value: str) -> str:
        if value and not re.fullmatch(r"D\d{8}", value):
            raise ValueError(f"{value} is not a valid department code! Format should be Dxxxxxxxx where x is a digit")
        return value


class ProgramRecord(RecordSchema):
    required_messages = {
        "program_code": "Program code is required",
        "name": "Program name is required",
        "description": "Program description is required",
        "department_id": "Department is required",
        "degree_level": "Degree level is required",
        "credits": "Credits are required",
        "duration": "Duration is required",
    }

    program_code: str
    name: str
    description: str
    department_id: uuid.UUID
    degree_level: str
    credits: int
    duration: int
    status: str = "active"

    @field_validator("program_code")
    @classmethod
    def _program_code(cls, value: str) -> str:
        if value and not re.fullmatch(r"P\d{8}", value):
            raise ValueError(f"{value} is not a valid program code! Format should be Pxxxxxxxx where x is a digit")
        return value

    @field_validator("degree_level")
    @classmethod
    def _degree_level(cls, value: str) -> str:
        return _choice(value, DEGREE_LEVELS, "degree level")

    @field_validator("credits")
    @classmethod
    def _credits(cls, value: int) -> int:
        return _bounded(value, low=1, low_message="Credits must be greater than 0")

    @field_validator("duration")
    @classmethod
    def _duration(cls, value: int) -> int:
        return _bounded(value, low=1, low_message="Duration must be at least 1 year")

    @field_validator("status")
    @classmethod
    def _status(cls, value: str) -> str:
        return _choice(value, PROGRAM_STATUSES, "status")


class CourseRecord(RecordSchema):
    required_messages = {
        "course_code": "Course code is required",
        "title": "Course title is required",
        "description": "Course description is required",
        "credits": "Credits are required",
        "day_of_week": "Day of week is required",
        "start_time": "Start time is required",
        "end_time": "End time is required",
        "location": "Location is required",
        "program_ids": "At least one program must be associated",
    }

    course_code: str
    title: str
    description: str
    credits: int
    day_of_week: List[str]
    start_time: str
    end_time: str
    location: str
    program_ids: List[uuid.UUID]
    prerequisites: List[uuid.UUID] = []

    @field_validator("course_code")
    @classmethod
    def _course_code(cls, value: str) -> str:
        if value and not re.fullmatch(r"C\d{8}", value):
            raise ValueError(f"{value} is not a valid course code! Format should be Cxxxxxxxx where x is a digit")
        return value

    @field_validator("credits")
    @classmethod
    def _credits(cls, value: int) -> int:
        return _bounded(
            value, low=0, high=12, low_message="Credits cannot be negative", high_message="Credits cannot exceed 12"
        )

    @field_validator("day_of_week")
    @classmethod
    def _day_of_week(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one day of week must be specified")
        return [_choice(day, WEEKDAYS, "day of week") for day in value]

    @field_validator("start_time", "end_time")
    @classmethod
    def _time(cls, value: str) -> str:
        if value and not TIME_RE.fullmatch(value):
            raise ValueError(f"{value} is not a valid time format! Use HH:mm format")
        return value

    @field_validator("program_ids")
    @classmethod
    def _program_ids(cls, value: List[uuid.UUID]) -> List[uuid.UUID]:
        if not value:
            raise ValueError("At least one program must be specified")
        return value

    def finalize(self) -> list[str]:
        start = tuple(int(part) for part in self.start_time.split(":"))
        end = tuple(int(part) for part in self.end_time.split(":"))
        if start >= end:
            return ["End time must be after start time"]
        return []


class Assignment(RecordSchema):
    required_messages = {
        "name": "Assignment name is required",
        "score": "Assignment score is required",
        "weight": "Assignment weight is required",
    }

    name: str
    score: float
    weight: float

    @field_validator("score")
    @classmethod
    def _score(cls, value: float) -> float:
        return _bounded(
            value, low=0, high=100, low_message="Score cannot be less than 0", high_message="Score cannot exceed 100"
        )

    @field_validator("weight")
    @classmethod
    def _weight(cls, value: float) -> float:
        return _bounded(
            value, low=0, high=100, low_message="Weight cannot be less than 0", high_message="Weight cannot exceed 100"
        )


class GradeData(RecordSchema):
    midterm: Optional[float] = None
    final: Optional[float] = None
    assignments: List[Assignment] = []
    total_score: Optional[float] = None
    letter_grade: Optional[str] = None

    @field_validator("midterm", "final")
    @classmethod
    def _exam(cls, value: Optional[float]) -> Optional[float]:
        return _bounded(
            value, low=0, high=100, low_message="Grade cannot be less than 0", high_message="Grade cannot exceed 100"
        )

    @field_validator("total_score")
    @classmethod
    def _total_score(cls, value: Optional[float]) -> Optional[float]:
        return _bounded(
            value,
            low=0,
            high=100,
            low_message="Total score cannot be less than 0",
            high_message="Total score cannot exceed 100",
        )

    @field_validator("letter_grade")
    @classmethod
    def _letter_grade(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _choice(value, LETTER_GRADES, "letter grade")


class AcademicRecordRecord(RecordSchema):
    required_messages = {
        "student_id": "Student ID is required",
        "course_id": "Course ID is required",
        "semester": "Semester is required",
        "academic_year": "Academic year is required",
    }

    student_id: uuid.UUID
    course_id: uuid.UUID
    semester: str
    academic_year: str
    registration_status: str = "registered"
    grade: Optional[GradeData] = None

    @field_validator("academic_year")
    @classmethod
    def _academic_year(cls, value: str) -> str:
        if value and not ACADEMIC_YEAR_RE.fullmatch(value):
            raise ValueError(f"{value} is not a valid academic year format! Use YYYY-YYYY format")
        return value

    @field_validator("registration_status")
    @classmethod
    def _registration_status(cls, value: str) -> str:
        return _choice(value, REGISTRATION_STATUSES, "registration status")

    def finalize(self) -> list[str]:
        if self.registration_status in {"completed", "failed"}:
            if self.grade is None or self.grade.total_score is None or not self.grade.letter_grade:
                return ["Grade information is required for completed or failed courses"]
        return []


class AttendanceRecord(RecordSchema):
    required_messages = {
        "student_id": "Student ID is required",
        "course_id": "Course ID is required",
        "date": "Date is required",
        "status": "Status is required",
    }

    student_id: uuid.UUID
    course_id: uuid.UUID
    date: date_type
    status: str
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _status(cls, value: str) -> str:
        return _choice(value, ATTENDANCE_STATUSES, "attendance status")


def validate_record(schema: type[RecordSchema], record: dict[str, Any]) -> RecordSchema:
    data = {key: value for key, value in record.items() if value is not None}
    try:
        validated = schema.model_validate(data)
    except ValidationError as exc:
        raise RecordValidationError(_error_messages(exc, schema.required_messages))
    problems = validated.finalize()
    if problems:
        raise RecordValidationError(problems)
    return validated
