from __future__ import annotations

from collections.abc import Iterable
import logging

from sqlalchemy.orm import Session

from classplanner.schemas.scheduler import ScheduleScopeRequest, UnassignedCourse, ValidationResultOut
from classplanner.services.placement_planner import LAB_ROOM_TYPES, THEORY_ROOM_TYPES, RoomCandidate
from classplanner.services.scope import EnrolledCourse, ScopeData, load_rooms, load_scope
from classplanner.services.time_grammar import constraint_family

logger = logging.getLogger(__name__)


def check_enrolled_courses(
    scope: ScopeData,
    rooms: Iterable[RoomCandidate] = (),
) -> ValidationResultOut:
    """Pre-flight check over an already loaded scope.

    Missing instructor assignments make the result invalid. Batches without
    courses and class types without any usable classroom only warn, since the
    planner reports those per unit.
    """
    errors: list[str] = []
    warnings: list[str] = []
    unassigned: list[UnassignedCourse] = []

    for item in scope.enrolled:
        if item.teacher is not None:
            continue
        unassigned.append(_unassigned(item))
        errors.append(f"{item.course.code} has no instructor assigned for batch {item.batch.name}")

    enrolled_batches = {item.batch.id for item in scope.enrolled}
    for batch in scope.batches:
        if batch.id not in enrolled_batches:
            warnings.append(f"Batch {batch.name} has no courses offered for semester {batch.semester}")

    room_types = {room.room_type for room in rooms if room.is_active}
    families = {constraint_family(item.course.course_type.value) for item in scope.enrolled}
    if "theory" in families and not room_types & THEORY_ROOM_TYPES:
        warnings.append("No active lecture or seminar rooms are available for theory classes")
    if "lab" in families and not room_types & LAB_ROOM_TYPES:
        warnings.append("No active laboratory rooms are available for lab or project classes")

    return ValidationResultOut(
        valid=not unassigned,
        errors=errors,
        warnings=warnings,
        unassignedCourses=unassigned,
    )


def validate(db: Session, request: ScheduleScopeRequest) -> ValidationResultOut:
    scope = load_scope(db, request)
    result = check_enrolled_courses(scope, load_rooms(db))
    logger.info(
        "SCHEDULE VALIDATION | session_id=%s | mode=%s | batches=%s | courses=%s | valid=%s | unassigned=%s",
        request.sessionId,
        request.selectionMode,
        len(scope.batches),
        len(scope.enrolled),
        result.valid,
        len(result.unassignedCourses),
    )
    return result


def _unassigned(item: EnrolledCourse) -> UnassignedCourse:
    return UnassignedCourse(
        batchId=item.batch.id,
        batchName=item.batch.name,
        courseId=item.course.id,
        courseCode=item.course.code,
        courseName=item.course.name,
        semester=item.session_course.semester,
    )
