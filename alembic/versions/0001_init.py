"""init
Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        *_timestamps(),
        sa.Column("user_code", sa.String(length=8), nullable=False, unique=True),
        sa.Column("username", sa.String(length=100), nullable=False, unique=True),
        sa.Column("email", sa.String(length=200), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=7), nullable=False),
        sa.Column("status", sa.String(length=8), nullable=False, server_default="active"),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("profile_data", sa.JSON(), nullable=True),
    )
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "departments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        *_timestamps(),
        sa.Column("code", sa.String(length=9), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_index("ix_departments_name", "departments", ["name"])
    op.create_index("ix_departments_created_at", "departments", ["created_at"])

    op.create_table(
        "programs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        *_timestamps(),
        sa.Column("program_code", sa.String(length=9), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("department_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("departments.id"), nullable=False),
        sa.Column("degree_level", sa.String(length=9), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=10), nullable=False, server_default="active"),
    )
    op.create_index("ix_programs_name", "programs", ["name"])
    op.create_index("ix_programs_department_id", "programs", ["department_id"])
    op.create_index("ix_programs_status", "programs", ["status"])
    op.create_index("ix_programs_created_at", "programs", ["created_at"])

    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        *_timestamps(),
        sa.Column("course_code", sa.String(length=9), nullable=False, unique=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.JSON(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=False),
        sa.Column("program_ids", sa.JSON(), nullable=False),
        sa.Column("prerequisites", sa.JSON(), nullable=False),
    )
    op.create_index("ix_courses_created_at", "courses", ["created_at"])

    op.create_table(
        "academic_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        *_timestamps(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("semester", sa.String(length=50), nullable=False),
        sa.Column("academic_year", sa.String(length=9), nullable=False),
        sa.Column("registration_status", sa.String(length=10), nullable=False, server_default="registered"),
        sa.Column("grade", sa.JSON(), nullable=True),
        sa.UniqueConstraint(
            "student_id", "course_id", "semester", "academic_year", name="uq_academic_record_enrollment"
        ),
    )
    op.create_index("ix_academic_records_student_id", "academic_records", ["student_id"])
    op.create_index("ix_academic_records_course_id", "academic_records", ["course_id"])
    op.create_index("ix_academic_records_created_at", "academic_records", ["created_at"])

    op.create_table(
        "attendance",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        *_timestamps(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=7), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("student_id", "course_id", "date", name="uq_attendance_student_course_date"),
    )
    op.create_index("ix_attendance_student_id", "attendance", ["student_id"])
    op.create_index("ix_attendance_course_id", "attendance", ["course_id"])
    op.create_index("ix_attendance_date", "attendance", ["date"])
    op.create_index("ix_attendance_status", "attendance", ["status"])
    op.create_index("ix_attendance_created_at", "attendance", ["created_at"])


def downgrade():
    op.drop_table("attendance")
    op.drop_table("academic_records")
    op.drop_table("courses")
    op.drop_table("programs")
    op.drop_table("departments")
    op.drop_table("users")
