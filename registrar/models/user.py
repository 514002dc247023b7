from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column
from registrar.db.session import Base
from registrar.models.choices import USER_ROLES, USER_STATUSES
from registrar.models.common import UUIDMixin, TimestampMixin

class User(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "users"
    user_code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(Enum(*USER_ROLES, native_enum=False, name="user_role"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        Enum(*USER_STATUSES, native_enum=False, name="user_status"), nullable=False, default="active"
    )
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # teacher: contact_phone, bio, status; student: date_of_birth, gender, address, phone,
    # enrollment_status, department_id, program_id, year
    profile_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
