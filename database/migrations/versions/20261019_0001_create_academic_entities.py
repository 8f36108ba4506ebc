"""create academic entities

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


batch_shift_enum = sa.Enum("day", "evening", name="batch_shift")
room_type_enum = sa.Enum("lecture", "seminar", "laboratory", "computer_lab", name="room_type")
course_type_enum = sa.Enum("theory", "lab", "project", name="course_type")


def upgrade() -> None:
    op.create_table(
        "academic_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "departments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("short_name", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "batches",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("department_id", sa.String(length=36), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("shift", batch_shift_enum, nullable=False, server_default="day"),
        sa.Column("student_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("session_id", "department_id", "name", name="uq_batches_session_department_name"),
    )
    op.create_index("ix_batches_session_id", "batches", ["session_id"])
    op.create_index("ix_batches_department_id", "batches", ["department_id"])
    op.create_table(
        "classrooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("room_number", sa.String(length=50), nullable=False),
        sa.Column("building", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="40"),
        sa.Column("room_type", room_type_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_classrooms_room_number", "classrooms", ["room_number"], unique=True)
    op.create_table(
        "teachers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("department_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_teachers_email", "teachers", ["email"], unique=True)
    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("course_type", course_type_enum, nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("sessions_per_week", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_courses_code", "courses", ["code"], unique=True)
    op.create_table(
        "session_courses",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=False),
        sa.Column("department_id", sa.String(length=36), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("session_id", "course_id", "department_id", "semester", name="uq_session_courses_offering"),
    )
    op.create_index("ix_session_courses_session_id", "session_courses", ["session_id"])
    op.create_index("ix_session_courses_department_id", "session_courses", ["department_id"])
    op.create_table(
        "instructor_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("session_course_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("batch_id", "session_course_id", name="uq_instructor_assignments_batch_course"),
    )
    op.create_index("ix_instructor_assignments_batch_id", "instructor_assignments", ["batch_id"])
    op.create_index("ix_instructor_assignments_session_course_id", "instructor_assignments", ["session_course_id"])


def downgrade() -> None:
    op.drop_table("instructor_assignments")
    op.drop_table("session_courses")
    op.drop_index("ix_courses_code", table_name="courses")
    op.drop_table("courses")
    op.drop_index("ix_teachers_email", table_name="teachers")
    op.drop_table("teachers")
    op.drop_index("ix_classrooms_room_number", table_name="classrooms")
    op.drop_table("classrooms")
    op.drop_table("batches")
    op.drop_table("departments")
    op.drop_table("academic_sessions")
    bind = op.get_bind()
    course_type_enum.drop(bind, checkfirst=True)
    room_type_enum.drop(bind, checkfirst=True)
    batch_shift_enum.drop(bind, checkfirst=True)
