from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
import logging
import re

from classplanner.services.constraint_index import ConstraintIndex, ReservationConflict
from classplanner.services.time_grammar import (
    TimeBlock,
    TimeGrammar,
    constraint_family,
    day_index,
)
from classplanner.schemas.time_slots import minutes_to_time, parse_time_to_minutes

logger = logging.getLogger(__name__)

THEORY_ROOM_TYPES = frozenset({"lecture", "seminar"})
LAB_ROOM_TYPES = frozenset({"laboratory", "computer_lab"})


class UnscheduledReason(str, Enum):
    no_instructor = "no_instructor"
    working_days_too_limited = "working_days_too_limited"
    no_compatible_block = "no_compatible_block"
    no_room = "no_room"
    teacher_conflict = "teacher_conflict"
    batch_conflict = "batch_conflict"


# How far a candidate got through the room -> teacher -> batch pipeline.
_STAGE_REASONS = {
    0: UnscheduledReason.no_compatible_block,
    1: UnscheduledReason.no_room,
    2: UnscheduledReason.teacher_conflict,
    3: UnscheduledReason.batch_conflict,
}


def compatible_room_types(class_type: str) -> frozenset[str]:
    return THEORY_ROOM_TYPES if constraint_family(class_type) == "theory" else LAB_ROOM_TYPES


def natural_key(value: str) -> tuple:
    parts = re.split(r"(\d+)", value or "")
    return tuple((0, int(part)) if part.isdigit() else (1, part.lower()) for part in parts if part != "")


@dataclass(frozen=True)
class RoomCandidate:
    id: str
    room_number: str
    room_type: str
    capacity: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class SchedulableUnit:
    batch_id: str
    batch_name: str
    batch_shift: str
    session_course_id: str
    course_id: str
    course_code: str
    course_name: str
    class_type: str
    duration: int
    teacher_id: str | None = None
    teacher_name: str | None = None
    batch_size: int = 0
    semester: int | None = None
    department_id: str | None = None
    occurrence: int = 1

    @property
    def unit_id(self) -> str:
        return f"{self.batch_id}:{self.session_course_id}:{self.class_type}:{self.occurrence}"

    def describe(self) -> dict:
        return {
            "batchId": self.batch_id,
            "batchName": self.batch_name,
            "batchShift": self.batch_shift,
            "sessionCourseId": self.session_course_id,
            "courseId": self.course_id,
            "courseCode": self.course_code,
            "courseName": self.course_name,
            "courseType": self.class_type,
            "teacherId": self.teacher_id,
            "teacherName": self.teacher_name,
            "semester": self.semester,
            "durationMinutes": self.duration,
        }


@dataclass
class ClassAssignment:
    batch_id: str
    batch_name: str
    batch_shift: str
    session_course_id: str
    course_id: str
    course_code: str
    course_name: str
    teacher_id: str | None
    teacher_name: str | None
    classroom_id: str
    room_number: str
    days_of_week: list[str]
    start: int
    end: int
    class_type: str

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end)

    def to_payload(self) -> dict:
        return {
            "batchId": self.batch_id,
            "batchName": self.batch_name,
            "batchShift": self.batch_shift,
            "sessionCourseId": self.session_course_id,
            "courseId": self.course_id,
            "courseCode": self.course_code,
            "courseName": self.course_name,
            "teacherId": self.teacher_id,
            "teacherName": self.teacher_name,
            "classroomId": self.classroom_id,
            "roomNumber": self.room_number,
            "daysOfWeek": list(self.days_of_week),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "classType": self.class_type,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "ClassAssignment":
        return cls(
            batch_id=payload["batchId"],
            batch_name=payload.get("batchName") or payload["batchId"],
            batch_shift=payload.get("batchShift") or "day",
            session_course_id=payload["sessionCourseId"],
            course_id=payload.get("courseId") or "",
            course_code=payload.get("courseCode") or "",
            course_name=payload.get("courseName") or "",
            teacher_id=payload.get("teacherId"),
            teacher_name=payload.get("teacherName"),
            classroom_id=payload["classroomId"],
            room_number=payload.get("roomNumber") or "",
            days_of_week=list(payload.get("daysOfWeek") or []),
            start=parse_time_to_minutes(payload["startTime"]),
            end=parse_time_to_minutes(payload["endTime"]),
            class_type=payload.get("classType") or "theory",
        )


@dataclass(frozen=True)
class UnscheduledEntry:
    unit: SchedulableUnit
    reason: UnscheduledReason
    message: str

    def to_payload(self) -> dict:
        payload = self.unit.describe()
        payload["reason"] = self.reason.value
        payload["message"] = self.message
        return payload


@dataclass
class PlannerOptions:
    working_days: list[str]
    group_labs_together: bool = True
    preferred_rooms: dict[str, str | None] = field(default_factory=dict)
    # Per-shift overrides of working_days.
    shift_working_days: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class PlacementResult:
    assignments: list[ClassAssignment]
    unscheduled: list[UnscheduledEntry]
    placed_units: int = 0

    @property
    def stats(self) -> dict:
        return {"scheduled": self.placed_units, "unscheduled": len(self.unscheduled)}


@dataclass(frozen=True)
class _Candidate:
    day: str
    slot: TimeBlock


def _enum_value(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def expand_units(enrolled: Iterable, durations: dict[str, int]) -> list[SchedulableUnit]:
    """One unit per required weekly session of every enrolled (batch, course) pair.

    `enrolled` items expose batch, session_course, course and teacher
    attributes (see ``services.scope.EnrolledCourse``).
    """
    units: list[SchedulableUnit] = []
    for item in enrolled:
        class_type = _enum_value(item.course.course_type)
        duration = int(durations.get(class_type) or durations.get("lab" if class_type == "project" else "theory") or 0)
        sessions = max(1, int(item.course.sessions_per_week or 1))
        shift = _enum_value(item.batch.shift)
        for occurrence in range(1, sessions + 1):
            units.append(
                SchedulableUnit(
                    batch_id=item.batch.id,
                    batch_name=item.batch.name,
                    batch_shift=shift,
                    session_course_id=item.session_course.id,
                    course_id=item.course.id,
                    course_code=item.course.code,
                    course_name=item.course.name,
                    class_type=class_type,
                    duration=duration,
                    teacher_id=item.teacher.id if item.teacher is not None else None,
                    teacher_name=item.teacher.full_name if item.teacher is not None else None,
                    batch_size=item.batch.student_count or 0,
                    semester=item.session_course.semester,
                    department_id=item.batch.department_id,
                    occurrence=occurrence,
                )
            )
    return units


def missing_instructor(unit: SchedulableUnit) -> UnscheduledEntry:
    return UnscheduledEntry(
        unit=unit,
        reason=UnscheduledReason.no_instructor,
        message=f"{unit.course_code} has no instructor assigned for batch {unit.batch_name}",
    )


def merge_recurring(assignments: Iterable[ClassAssignment]) -> list[ClassAssignment]:
    """Fold single-day assignments that share everything but the day into one recurring assignment."""
    merged: dict[tuple, ClassAssignment] = {}
    for item in assignments:
        key = (
            item.batch_id,
            item.session_course_id,
            item.teacher_id,
            item.classroom_id,
            item.start,
            item.end,
            item.class_type,
        )
        existing = merged.get(key)
        if existing is None:
            merged[key] = ClassAssignment(**{**item.__dict__, "days_of_week": list(item.days_of_week)})
            continue
        for day in item.days_of_week:
            if day not in existing.days_of_week:
                existing.days_of_week.append(day)
        existing.days_of_week.sort(key=day_index)
    return list(merged.values())


class PlacementPlanner:
    """First-fit placement of schedulable units against a shared constraint index.

    Units are processed strictly in `order_units` order; each is either
    committed to the first conflict-free (day, slot, room) candidate or
    recorded as unscheduled with the reason of its most promising candidate.
    """

    def __init__(
        self,
        *,
        grammar: TimeGrammar,
        index: ConstraintIndex,
        rooms: Iterable[RoomCandidate],
        options: PlannerOptions,
    ) -> None:
        self.grammar = grammar
        self.index = index
        self.options = options
        self.rooms = {room.id: room for room in rooms}
        self.working_days = sorted(dict.fromkeys(options.working_days), key=day_index)
        self.shift_working_days = {
            shift: sorted(dict.fromkeys(days), key=day_index) for shift, days in options.shift_working_days.items()
        }

        self._lab_days_by_batch: dict[str, set[str]] = defaultdict(set)
        self._class_count: dict[tuple[str, str], int] = defaultdict(int)
        self._course_days: dict[tuple[str, str], set[str]] = defaultdict(set)

    def days_for(self, unit: SchedulableUnit) -> list[str]:
        return self.shift_working_days.get(unit.batch_shift, self.working_days)

    def order_units(self, units: Iterable[SchedulableUnit]) -> list[SchedulableUnit]:
        def sort_key(unit: SchedulableUnit) -> tuple:
            type_rank = 0
            if self.options.group_labs_together:
                type_rank = 1 if constraint_family(unit.class_type) == "theory" else 0
            return (
                natural_key(unit.batch_name),
                unit.batch_id,
                type_rank,
                natural_key(unit.course_code),
                unit.session_course_id,
                unit.occurrence,
            )

        return sorted(units, key=sort_key)

    def plan(self, units: Iterable[SchedulableUnit]) -> PlacementResult:
        placed: list[ClassAssignment] = []
        unscheduled: list[UnscheduledEntry] = []
        for unit in self.order_units(units):
            if unit.teacher_id is None:
                unscheduled.append(missing_instructor(unit))
                continue
            assignment, failure = self._place(unit)
            if assignment is not None:
                placed.append(assignment)
            else:
                unscheduled.append(failure)
        result = PlacementResult(
            assignments=merge_recurring(placed),
            unscheduled=unscheduled,
            placed_units=len(placed),
        )
        logger.debug(
            "PLACEMENT DONE | units_placed=%s | assignments=%s | unscheduled=%s",
            len(placed),
            len(result.assignments),
            len(unscheduled),
        )
        return result

    def _candidates(self, unit: SchedulableUnit) -> tuple[list[_Candidate], bool]:
        candidates: list[_Candidate] = []
        any_blocks = False
        for day in self.days_for(unit):
            blocks, _ = self.grammar.effective_blocks(unit.batch_shift, day)
            if blocks:
                any_blocks = True
            if not self.grammar.allows(unit.batch_shift, day, unit.class_type):
                continue
            for block in blocks:
                if block.minutes < unit.duration:
                    continue
                for slot in block.slices(unit.duration):
                    candidates.append(_Candidate(day=day, slot=slot))
        return self._rank_candidates(unit, candidates), any_blocks

    def _rank_candidates(self, unit: SchedulableUnit, candidates: list[_Candidate]) -> list[_Candidate]:
        is_lab = constraint_family(unit.class_type) == "lab"
        if is_lab and self.options.group_labs_together:
            lab_days = self._lab_days_by_batch[unit.batch_id]

            def lab_key(candidate: _Candidate) -> tuple:
                return (
                    0 if candidate.day in lab_days else 1,
                    self._class_count[(unit.batch_id, candidate.day)],
                    candidate.slot.start,
                    day_index(candidate.day),
                )

            return sorted(candidates, key=lab_key)

        course_days = self._course_days[(unit.batch_id, unit.session_course_id)]

        def spread_key(candidate: _Candidate) -> tuple:
            return (
                1 if candidate.day in course_days else 0,
                day_index(candidate.day),
                candidate.slot.start,
            )

        return sorted(candidates, key=spread_key)

    def _room_order(self, unit: SchedulableUnit) -> list[RoomCandidate]:
        allowed = compatible_room_types(unit.class_type)

        def fits(room: RoomCandidate) -> bool:
            return (
                room.is_active
                and room.room_type in allowed
                and (unit.batch_size <= 0 or room.capacity <= 0 or room.capacity >= unit.batch_size)
            )

        compatible = sorted(
            (room for room in self.rooms.values() if fits(room)),
            key=lambda room: (natural_key(room.room_number), room.id),
        )
        preferred_id = self.options.preferred_rooms.get(constraint_family(unit.class_type))
        preferred = self.rooms.get(preferred_id) if preferred_id else None
        if preferred is None or not fits(preferred):
            return compatible
        return [preferred] + [room for room in compatible if room.id != preferred.id]

    def _place(self, unit: SchedulableUnit) -> tuple[ClassAssignment | None, UnscheduledEntry | None]:
        if not self.days_for(unit):
            return None, self._failure(unit, UnscheduledReason.working_days_too_limited)

        candidates, any_blocks = self._candidates(unit)
        if not any_blocks:
            return None, self._failure(unit, UnscheduledReason.working_days_too_limited)

        rooms = self._room_order(unit)
        deepest = 0
        for candidate in candidates:
            start, end = candidate.slot.start, candidate.slot.end
            room = next(
                (item for item in rooms if self.index.is_free("room", item.id, candidate.day, start, end)),
                None,
            )
            if room is None:
                deepest = max(deepest, 1)
                continue
            if not self.index.is_free("teacher", unit.teacher_id, candidate.day, start, end):
                deepest = max(deepest, 2)
                continue
            if not self.index.is_free("batch", unit.batch_id, candidate.day, start, end):
                deepest = max(deepest, 3)
                continue
            if self._commit(unit, candidate, room):
                return self._record(unit, candidate, room), None
        return None, self._failure(unit, _STAGE_REASONS[deepest])

    def _commit(self, unit: SchedulableUnit, candidate: _Candidate, room: RoomCandidate) -> bool:
        reserved: list[tuple] = []
        try:
            for kind, resource_id in (("teacher", unit.teacher_id), ("room", room.id), ("batch", unit.batch_id)):
                self.index.reserve(kind, resource_id, candidate.day, candidate.slot.start, candidate.slot.end)
                reserved.append((kind, resource_id))
        except ReservationConflict:
            for kind, resource_id in reserved:
                self.index.release(kind, resource_id, candidate.day, candidate.slot.start, candidate.slot.end)
            return False
        return True

    def _record(self, unit: SchedulableUnit, candidate: _Candidate, room: RoomCandidate) -> ClassAssignment:
        if constraint_family(unit.class_type) == "lab":
            self._lab_days_by_batch[unit.batch_id].add(candidate.day)
        self._class_count[(unit.batch_id, candidate.day)] += 1
        self._course_days[(unit.batch_id, unit.session_course_id)].add(candidate.day)
        return ClassAssignment(
            batch_id=unit.batch_id,
            batch_name=unit.batch_name,
            batch_shift=unit.batch_shift,
            session_course_id=unit.session_course_id,
            course_id=unit.course_id,
            course_code=unit.course_code,
            course_name=unit.course_name,
            teacher_id=unit.teacher_id,
            teacher_name=unit.teacher_name,
            classroom_id=room.id,
            room_number=room.room_number,
            days_of_week=[candidate.day],
            start=candidate.slot.start,
            end=candidate.slot.end,
            class_type=unit.class_type,
        )

    def _failure(self, unit: SchedulableUnit, reason: UnscheduledReason) -> UnscheduledEntry:
        if reason is UnscheduledReason.working_days_too_limited:
            message = f"No working day offers time blocks for the {unit.batch_shift} shift"
        elif reason is UnscheduledReason.no_compatible_block:
            message = (
                f"No working day has a {unit.duration}-minute block open to {unit.class_type} classes "
                f"for the {unit.batch_shift} shift"
            )
        elif reason is UnscheduledReason.no_room:
            message = f"No free {unit.class_type} classroom in any available block"
        elif reason is UnscheduledReason.teacher_conflict:
            message = f"Teacher {unit.teacher_name or unit.teacher_id} is already scheduled at every available time"
        else:
            message = f"Batch {unit.batch_name} already has classes at every available time"
        return UnscheduledEntry(unit=unit, reason=reason, message=message)
