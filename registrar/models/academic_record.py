import uuid

from sqlalchemy import JSON, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID
from registrar.db.session import Base
from registrar.models.choices import REGISTRATION_STATUSES
from registrar.models.common import UUIDMixin, TimestampMixin

class AcademicRecord(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "academic_records"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "semester", "academic_year", name="uq_academic_record_enrollment"),
    )
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    course_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)
    semester: Mapped[str] = mapped_column(String(50), nullable=False)
    academic_year: Mapped[str] = mapped_column(String(9), nullable=False)
    registration_status: Mapped[str] = mapped_column(
        Enum(*REGISTRATION_STATUSES, native_enum=False, name="registration_status"),
        nullable=False,
        default="registered",
    )
    # midterm, final, assignments[{name, score, weight}], total_score, letter_grade
    grade: Mapped[dict | None] = mapped_column(JSON, nullable=True)
