from __future__ import annotations

from dataclasses import dataclass, field
import logging
from time import perf_counter

from sqlalchemy.orm import Session

from classplanner.core.config import WEEK_DAYS, Settings, get_settings
from classplanner.models.schedule_proposal import ScheduleProposal
from classplanner.schemas.scheduler import GenerateScheduleRequest, GenerationStats, ValidationResultOut
from classplanner.services.constraint_index import ConstraintIndex
from classplanner.services.placement_planner import (
    PlacementPlanner,
    PlannerOptions,
    expand_units,
    missing_instructor,
)
from classplanner.services.proposal_manager import create_proposal
from classplanner.services.scope import load_active_schedules, load_rooms, load_scope, seed_constraint_index
from classplanner.services.time_grammar import SHIFTS, TimeGrammar, working_days
from classplanner.services.validator import check_enrolled_courses

logger = logging.getLogger(__name__)


@dataclass
class GenerationOutcome:
    validation: ValidationResultOut
    stats: GenerationStats
    proposal: ScheduleProposal | None = None
    options: dict = field(default_factory=dict)

    @property
    def blocked(self) -> bool:
        return self.proposal is None


def resolve_durations(request: GenerateScheduleRequest, settings: Settings) -> dict[str, int]:
    """Per class type minutes: explicit classDurations, then classDurationMinutes for theory, then settings."""
    theory = request.classDurationMinutes or settings.default_theory_minutes
    durations = {
        "theory": theory,
        "lab": settings.default_lab_minutes,
        "project": settings.default_project_minutes,
    }
    if request.classDurations is not None:
        for class_type, minutes in request.classDurations.model_dump(exclude_none=True).items():
            durations[class_type] = minutes
    return durations


def resolve_working_days(request: GenerateScheduleRequest, settings: Settings) -> dict[str, list[str]]:
    if request.offDays is not None:
        days = working_days(request.offDays)
        return {shift: list(days) for shift in SHIFTS}
    if request.workingDays is not None:
        off_days = [day for day in WEEK_DAYS if day not in request.workingDays]
        days = working_days(off_days)
        return {shift: list(days) for shift in SHIFTS}
    return {shift: working_days(settings.shift_off_days(shift)) for shift in SHIFTS}


def generate_schedule(
    db: Session,
    request: GenerateScheduleRequest,
    *,
    settings: Settings | None = None,
) -> GenerationOutcome:
    settings = settings or get_settings()
    started = perf_counter()
    logger.info(
        "SCHEDULE GENERATION START | session_id=%s | mode=%s | department_id=%s | batches=%s | shift=%s | group_labs=%s",
        request.sessionId,
        request.selectionMode,
        request.departmentId,
        ",".join(request.batchIds or []),
        request.targetShift,
        request.groupLabsTogether,
    )
    try:
        grammar = TimeGrammar.from_config(request.customTimeSlots)
        durations = resolve_durations(request, settings)
        shift_days = resolve_working_days(request, settings)

        # One Session is not safe to share across threads, so inputs load sequentially.
        scope = load_scope(db, request)
        rooms = load_rooms(db)
        active_rows = load_active_schedules(db)

        validation = check_enrolled_courses(scope, rooms)
        units = expand_units(scope.enrolled, durations)
        options = {
            "selectionMode": request.selectionMode,
            "departmentId": request.departmentId,
            "batchIds": [batch.id for batch in scope.batches],
            "targetShift": request.targetShift,
            "classDurations": durations,
            "workingDays": shift_days,
            "groupLabsTogether": request.groupLabsTogether,
            "preferredRooms": request.preferredRooms.model_dump() if request.preferredRooms else {},
        }

        if not validation.valid:
            blocked = [missing_instructor(unit).to_payload() for unit in units if unit.teacher_id is None]
            elapsed_ms = int((perf_counter() - started) * 1000)
            logger.warning(
                "SCHEDULE GENERATION BLOCKED | session_id=%s | unassigned=%s | wall_ms=%s",
                request.sessionId,
                len(validation.unassignedCourses),
                elapsed_ms,
            )
            return GenerationOutcome(
                validation=validation,
                stats=GenerationStats(
                    scheduled=0,
                    unscheduled=len(blocked),
                    unscheduledCourses=blocked,
                    warnings=validation.warnings,
                    runtimeMs=elapsed_ms,
                ),
                options=options,
            )

        index = seed_constraint_index(active_rows, ConstraintIndex())
        planner = PlacementPlanner(
            grammar=grammar,
            index=index,
            rooms=rooms,
            options=PlannerOptions(
                working_days=shift_days["day"],
                group_labs_together=request.groupLabsTogether,
                preferred_rooms=request.preferredRooms.model_dump() if request.preferredRooms else {},
                shift_working_days=shift_days,
            ),
        )
        result = planner.plan(units)
        proposal = create_proposal(
            db,
            session_id=request.sessionId,
            result=result,
            generated_by=request.generatedBy,
            options=options,
        )

        elapsed_ms = int((perf_counter() - started) * 1000)
        logger.info(
            "SCHEDULE GENERATION COMPLETE | session_id=%s | proposal_id=%s | units=%s | scheduled=%s | unscheduled=%s | seeded_rows=%s | wall_ms=%s",
            request.sessionId,
            proposal.id,
            len(units),
            result.placed_units,
            len(result.unscheduled),
            len(active_rows),
            elapsed_ms,
        )
        return GenerationOutcome(
            validation=validation,
            proposal=proposal,
            stats=GenerationStats(
                scheduled=result.placed_units,
                unscheduled=len(result.unscheduled),
                unscheduledCourses=[item.to_payload() for item in result.unscheduled],
                warnings=validation.warnings,
                runtimeMs=elapsed_ms,
            ),
            options=options,
        )
    except Exception:
        elapsed_ms = int((perf_counter() - started) * 1000)
        logger.exception(
            "SCHEDULE GENERATION FAILED | session_id=%s | mode=%s | wall_ms=%s",
            request.sessionId,
            request.selectionMode,
            elapsed_ms,
        )
        raise
