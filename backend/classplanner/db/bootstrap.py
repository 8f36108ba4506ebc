from __future__ import annotations

import logging

from sqlalchemy import inspect

from classplanner.core.config import get_settings
from classplanner.db.base import Base
from classplanner.db.session import engine
import classplanner.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "batches": {"id", "session_id", "department_id", "semester", "shift", "student_count"},
    "classrooms": {"id", "room_number", "room_type", "capacity", "is_active"},
    "instructor_assignments": {"id", "batch_id", "session_course_id", "teacher_id"},
    "course_schedules": {
        "id",
        "session_id",
        "batch_id",
        "session_course_id",
        "teacher_id",
        "classroom_id",
        "days_of_week",
        "start_time",
        "end_time",
        "status",
        "proposal_id",
    },
    "schedule_proposals": {"id", "session_id", "status", "schedule_data", "unscheduled", "metadata", "applied_at"},
}


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema() -> None:
    try:
        if get_settings().auto_create_schema:
            Base.metadata.create_all(bind=engine)
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc
