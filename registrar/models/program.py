import uuid

from sqlalchemy import Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID
from registrar.db.session import Base
from registrar.models.choices import DEGREE_LEVELS, PROGRAM_STATUSES
from registrar.models.common import UUIDMixin, TimestampMixin

class Program(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "programs"
    program_code: Mapped[str] = mapped_column(String(9), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("departments.id"), nullable=False, index=True
    )
    degree_level: Mapped[str] = mapped_column(Enum(*DEGREE_LEVELS, native_enum=False, name="degree_level"), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*PROGRAM_STATUSES, native_enum=False, name="program_status"), nullable=False, default="active", index=True
    )
