"""create course schedules, proposals and activity logs

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


schedule_status_enum = sa.Enum("active", "closed", "archived", name="schedule_status")
proposal_status_enum = sa.Enum("pending", "approved", "rejected", name="proposal_status")


def upgrade() -> None:
    op.create_table(
        "course_schedules",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("session_course_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("classroom_id", sa.String(length=36), nullable=True),
        sa.Column("days_of_week", sa.JSON(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("class_type", sa.String(length=20), nullable=False, server_default="theory"),
        sa.Column("status", schedule_status_enum, nullable=False, server_default="active"),
        sa.Column("proposal_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    for column in ("session_id", "batch_id", "teacher_id", "classroom_id", "status", "proposal_id"):
        op.create_index(f"ix_course_schedules_{column}", "course_schedules", [column])

    op.create_table(
        "schedule_proposals",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("generated_by", sa.String(length=100), nullable=True),
        sa.Column("status", proposal_status_enum, nullable=False, server_default="pending"),
        sa.Column("schedule_data", sa.JSON(), nullable=False),
        sa.Column("unscheduled", sa.JSON(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_schedule_proposals_session_id", "schedule_proposals", ["session_id"])
    op.create_index("ix_schedule_proposals_status", "schedule_proposals", ["status"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor", sa.String(length=100), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_index("ix_schedule_proposals_status", table_name="schedule_proposals")
    op.drop_index("ix_schedule_proposals_session_id", table_name="schedule_proposals")
    op.drop_table("schedule_proposals")
    for column in ("session_id", "batch_id", "teacher_id", "classroom_id", "status", "proposal_id"):
        op.drop_index(f"ix_course_schedules_{column}", table_name="course_schedules")
    op.drop_table("course_schedules")
    bind = op.get_bind()
    proposal_status_enum.drop(bind, checkfirst=True)
    schedule_status_enum.drop(bind, checkfirst=True)
