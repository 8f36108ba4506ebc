from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from classplanner.models.course_schedule import CourseSchedule, ScheduleStatus
from classplanner.schemas.scheduler import StatusSummaryOut


def status_summary(db: Session, batch_ids: list[str] | None = None) -> StatusSummaryOut:
    """Count persisted schedule rows per status, optionally for a subset of batches."""
    query = select(CourseSchedule.status, func.count(CourseSchedule.id)).group_by(CourseSchedule.status)
    if batch_ids:
        query = query.where(CourseSchedule.batch_id.in_(batch_ids))
    counts = {status.value: 0 for status in ScheduleStatus}
    for status, count in db.execute(query).all():
        key = status.value if isinstance(status, ScheduleStatus) else str(status)
        counts[key] = int(count)
    return StatusSummaryOut(**counts)
