from collections import defaultdict
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from classplanner.models.classroom import Classroom
from classplanner.models.course_schedule import CourseSchedule, ScheduleStatus
from classplanner.models.teacher import Teacher
from classplanner.schemas.conflict import ConflictCheckResult, ConflictDetail
from classplanner.schemas.time_slots import parse_time_to_minutes


class ConflictService:
    """Pairwise overlap audit over persisted schedule rows."""

    def __init__(self, schedules: List[CourseSchedule], room_names: Dict[str, str] = None, teacher_names: Dict[str, str] = None):
        self.schedules = schedules
        self.room_names = room_names or {}
        self.teacher_names = teacher_names or {}

    def detect_conflicts(self) -> ConflictCheckResult:
        conflicts: List[ConflictDetail] = []

        # Bucket by day, then compare pairwise within the day
        rows_by_day = defaultdict(list)
        for row in self.schedules:
            try:
                start, end = parse_time_to_minutes(row.start_time), parse_time_to_minutes(row.end_time)
            except ValueError:
                continue
            for day in row.days_of_week or []:
                rows_by_day[day].append((row, start, end))

        for day, day_rows in rows_by_day.items():
            day_rows.sort(key=lambda item: (item[1], item[0].id))
            n = len(day_rows)
            for i in range(n):
                s1, start1, end1 = day_rows[i]
                for j in range(i + 1, n):
                    s2, start2, end2 = day_rows[j]
                    if start2 >= end1:
                        break
                    if max(start1, start2) >= min(end1, end2):
                        continue
                    if s1.classroom_id and s1.classroom_id == s2.classroom_id:
                        room_name = self.room_names.get(s1.classroom_id, s1.classroom_id)
                        conflicts.append(ConflictDetail(
                            id=f"room-{s1.id}-{s2.id}-{day}",
                            type="room_conflict",
                            day=day,
                            description=f"Room {room_name} is double-booked on {day} ({s1.start_time}-{s1.end_time} and {s2.start_time}-{s2.end_time})",
                            schedule1=s1.id,
                            schedule2=s2.id,
                        ))
                    if s1.teacher_id and s1.teacher_id == s2.teacher_id:
                        teacher_name = self.teacher_names.get(s1.teacher_id, s1.teacher_id)
                        conflicts.append(ConflictDetail(
                            id=f"teacher-{s1.id}-{s2.id}-{day}",
                            type="teacher_conflict",
                            day=day,
                            description=f"Teacher {teacher_name} has overlapping classes on {day}",
                            schedule1=s1.id,
                            schedule2=s2.id,
                        ))
                    if s1.batch_id == s2.batch_id:
                        conflicts.append(ConflictDetail(
                            id=f"batch-{s1.id}-{s2.id}-{day}",
                            type="batch_conflict",
                            day=day,
                            description=f"Batch has overlapping classes on {day}",
                            schedule1=s1.id,
                            schedule2=s2.id,
                        ))

        return ConflictCheckResult(hasConflicts=bool(conflicts), count=len(conflicts), conflicts=conflicts)


def check_conflicts(db: Session, batch_ids: List[str], session_id: str = None) -> ConflictCheckResult:
    """Audit active rows; with batch ids, only clashes touching those batches are reported."""
    query = select(CourseSchedule).where(CourseSchedule.status == ScheduleStatus.active)
    if session_id:
        query = query.where(CourseSchedule.session_id == session_id)
    schedules = list(db.execute(query).scalars().all())

    room_names = {room.id: room.room_number for room in db.execute(select(Classroom)).scalars().all()}
    teacher_names = {teacher.id: teacher.full_name for teacher in db.execute(select(Teacher)).scalars().all()}
    report = ConflictService(schedules, room_names=room_names, teacher_names=teacher_names).detect_conflicts()
    if not batch_ids:
        return report

    selected = set(batch_ids)
    batch_of = {row.id: row.batch_id for row in schedules}
    conflicts = [
        item
        for item in report.conflicts
        if batch_of.get(item.schedule1) in selected or batch_of.get(item.schedule2) in selected
    ]
    return ConflictCheckResult(hasConflicts=bool(conflicts), count=len(conflicts), conflicts=conflicts)
