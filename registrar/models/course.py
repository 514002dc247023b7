from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from registrar.db.session import Base
from registrar.models.common import UUIDMixin, TimestampMixin

class Course(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "courses"
    course_code: Mapped[str] = mapped_column(String(9), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    day_of_week: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    # ids of programs / prerequisite courses, stored as strings
    program_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    prerequisites: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
