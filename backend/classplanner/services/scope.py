from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from classplanner.core.exceptions import ResourceNotFoundError, ScopeError
from classplanner.models.academic_session import AcademicSession
from classplanner.models.batch import Batch
from classplanner.models.classroom import Classroom
from classplanner.models.course import Course, SessionCourse
from classplanner.models.course_schedule import CourseSchedule, ScheduleStatus
from classplanner.models.instructor_assignment import InstructorAssignment
from classplanner.models.teacher import Teacher
from classplanner.schemas.scheduler import ScheduleScopeRequest
from classplanner.schemas.time_slots import parse_time_to_minutes
from classplanner.services.constraint_index import ConstraintIndex
from classplanner.services.placement_planner import RoomCandidate, natural_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrolledCourse:
    batch: Batch
    session_course: SessionCourse
    course: Course
    teacher: Teacher | None


@dataclass
class ScopeData:
    session: AcademicSession
    batches: list[Batch]
    enrolled: list[EnrolledCourse]


def resolve_batches(db: Session, request: ScheduleScopeRequest) -> list[Batch]:
    session = db.get(AcademicSession, request.sessionId)
    if session is None:
        raise ResourceNotFoundError("Session", request.sessionId)

    query = select(Batch).where(Batch.session_id == request.sessionId)
    if request.selectionMode == "department":
        query = query.where(Batch.department_id == request.departmentId)
    elif request.selectionMode in {"single_batch", "multi_batch"}:
        query = query.where(Batch.id.in_(request.batchIds or []))
    batches = list(db.execute(query).scalars().all())

    if request.selectionMode in {"single_batch", "multi_batch"}:
        found = {batch.id for batch in batches}
        missing = [batch_id for batch_id in request.batchIds or [] if batch_id not in found]
        if missing:
            raise ScopeError(
                "Some selected batches do not belong to this session",
                details={"missingBatchIds": missing},
            )

    if request.targetShift is not None:
        batches = [batch for batch in batches if batch.shift.value == request.targetShift]

    if not batches:
        raise ScopeError(
            "No batches match the requested selection",
            details={
                "sessionId": request.sessionId,
                "selectionMode": request.selectionMode,
                "targetShift": request.targetShift,
            },
        )
    batches.sort(key=lambda batch: (natural_key(batch.name), batch.id))
    return batches


def load_enrolled_courses(db: Session, session_id: str, batches: list[Batch]) -> list[EnrolledCourse]:
    """Every session-course offered to each batch's department and semester, with its assigned teacher."""
    department_ids = {batch.department_id for batch in batches}
    offerings = (
        db.execute(
            select(SessionCourse).where(
                SessionCourse.session_id == session_id,
                SessionCourse.department_id.in_(department_ids),
            )
        )
        .scalars()
        .all()
    )
    courses = {
        item.id: item
        for item in db.execute(select(Course).where(Course.id.in_({o.course_id for o in offerings}))).scalars().all()
    }
    assignments = {
        (item.batch_id, item.session_course_id): item.teacher_id
        for item in db.execute(
            select(InstructorAssignment).where(InstructorAssignment.batch_id.in_([batch.id for batch in batches]))
        )
        .scalars()
        .all()
    }
    teachers = {
        item.id: item
        for item in db.execute(select(Teacher).where(Teacher.id.in_(set(assignments.values())))).scalars().all()
    }

    enrolled: list[EnrolledCourse] = []
    for batch in batches:
        for offering in offerings:
            if offering.department_id != batch.department_id or offering.semester != batch.semester:
                continue
            course = courses.get(offering.course_id)
            if course is None:
                logger.warning(
                    "SESSION COURSE WITHOUT COURSE | session_course_id=%s | course_id=%s",
                    offering.id,
                    offering.course_id,
                )
                continue
            teacher_id = assignments.get((batch.id, offering.id))
            enrolled.append(
                EnrolledCourse(
                    batch=batch,
                    session_course=offering,
                    course=course,
                    teacher=teachers.get(teacher_id) if teacher_id else None,
                )
            )
    enrolled.sort(key=lambda item: (natural_key(item.batch.name), item.batch.id, natural_key(item.course.code)))
    return enrolled


def load_scope(db: Session, request: ScheduleScopeRequest) -> ScopeData:
    batches = resolve_batches(db, request)
    session = db.get(AcademicSession, request.sessionId)
    return ScopeData(
        session=session,
        batches=batches,
        enrolled=load_enrolled_courses(db, request.sessionId, batches),
    )


def load_rooms(db: Session) -> list[RoomCandidate]:
    rooms = db.execute(select(Classroom).where(Classroom.is_active.is_(True))).scalars().all()
    return [
        RoomCandidate(
            id=room.id,
            room_number=room.room_number,
            room_type=room.room_type.value,
            capacity=room.capacity or 0,
            is_active=room.is_active,
        )
        for room in rooms
    ]


def load_active_schedules(db: Session) -> list[CourseSchedule]:
    return list(
        db.execute(
            select(CourseSchedule)
            .where(CourseSchedule.status == ScheduleStatus.active)
            .order_by(CourseSchedule.created_at, CourseSchedule.id)
        )
        .scalars()
        .all()
    )


def seed_constraint_index(rows: list[CourseSchedule], index: ConstraintIndex | None = None) -> ConstraintIndex:
    """Occupy the index with already-active schedule rows so new placements avoid them."""
    index = index or ConstraintIndex()
    clashes = 0
    for row in rows:
        try:
            start = parse_time_to_minutes(row.start_time)
            end = parse_time_to_minutes(row.end_time)
        except ValueError:
            logger.warning("ACTIVE SCHEDULE SKIPPED | schedule_id=%s | reason=malformed time", row.id)
            continue
        if end <= start:
            logger.warning("ACTIVE SCHEDULE SKIPPED | schedule_id=%s | reason=empty interval", row.id)
            continue
        for day in row.days_of_week or []:
            if not index.seed(
                day=day,
                start=start,
                end=end,
                teacher_id=row.teacher_id,
                room_id=row.classroom_id,
                batch_id=row.batch_id,
            ):
                clashes += 1
    if clashes:
        logger.warning("ACTIVE SCHEDULE BASELINE HAS CLASHES | clashes=%s | rows=%s", clashes, len(rows))
    return index
