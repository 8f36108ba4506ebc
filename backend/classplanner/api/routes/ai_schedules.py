from fastapi import APIRouter, Depends, Header, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from classplanner.api.deps import get_db, parse_id_list
from classplanner.schemas.conflict import ConflictCheckResult
from classplanner.schemas.scheduler import (
    ApplyProposalResponse,
    BatchIdsRequest,
    CheckConflictsRequest,
    CloseSchedulesResponse,
    CourseScheduleOut,
    GenerateScheduleRequest,
    GenerateScheduleResponse,
    GenerationBlockedResponse,
    ReopenSchedulesResponse,
    ScheduleProposalOut,
    SessionIdRequest,
    StatusSummaryOut,
    ValidateScheduleRequest,
    ValidationResultOut,
)
from classplanner.services import proposal_manager
from classplanner.services.conflict_service import check_conflicts
from classplanner.services.generation import generate_schedule
from classplanner.services.status_reporter import status_summary
from classplanner.services.validator import validate

router = APIRouter()


@router.post("/validate", response_model=ValidationResultOut)
def validate_schedule_scope(
    payload: ValidateScheduleRequest,
    db: Session = Depends(get_db),
) -> ValidationResultOut:
    return validate(db, payload)


@router.post(
    "/generate",
    response_model=GenerateScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": GenerationBlockedResponse}},
)
def generate(
    payload: GenerateScheduleRequest,
    db: Session = Depends(get_db),
):
    outcome = generate_schedule(db, payload)
    if outcome.blocked:
        blocked = GenerationBlockedResponse(
            message="Some courses have no instructor assigned; assign instructors before generating",
            errors=outcome.validation.errors,
            warnings=outcome.validation.warnings,
            unassignedCourses=outcome.validation.unassignedCourses,
            stats=outcome.stats,
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=blocked.model_dump(mode="json"),
        )
    return GenerateScheduleResponse(
        proposal=proposal_manager.proposal_to_out(outcome.proposal),
        stats=outcome.stats,
    )


@router.post("/check-conflicts", response_model=ConflictCheckResult)
def check_schedule_conflicts(
    payload: CheckConflictsRequest,
    db: Session = Depends(get_db),
) -> ConflictCheckResult:
    return check_conflicts(db, payload.batchIds, payload.sessionId)


@router.get("/proposals", response_model=list[ScheduleProposalOut])
def list_proposals(
    session_id: str | None = Query(default=None, alias="sessionId"),
    db: Session = Depends(get_db),
) -> list[ScheduleProposalOut]:
    return [proposal_manager.proposal_to_out(item) for item in proposal_manager.list_proposals(db, session_id)]


@router.get("/proposals/{proposal_id}", response_model=ScheduleProposalOut)
def get_proposal(proposal_id: str, db: Session = Depends(get_db)) -> ScheduleProposalOut:
    return proposal_manager.proposal_to_out(proposal_manager.get_proposal(db, proposal_id))


@router.post("/proposals/{proposal_id}/apply", response_model=ApplyProposalResponse)
def apply_proposal(
    proposal_id: str,
    actor: str | None = Header(default=None, alias="X-Actor"),
    db: Session = Depends(get_db),
) -> ApplyProposalResponse:
    return proposal_manager.apply_proposal(db, proposal_id, actor=actor)


@router.post("/proposals/{proposal_id}/reject", response_model=ScheduleProposalOut)
def reject_proposal(
    proposal_id: str,
    actor: str | None = Header(default=None, alias="X-Actor"),
    db: Session = Depends(get_db),
) -> ScheduleProposalOut:
    return proposal_manager.proposal_to_out(proposal_manager.reject_proposal(db, proposal_id, actor=actor))


@router.delete("/proposals/{proposal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_proposal(
    proposal_id: str,
    actor: str | None = Header(default=None, alias="X-Actor"),
    db: Session = Depends(get_db),
) -> None:
    proposal_manager.discard_proposal(db, proposal_id, actor=actor)


@router.post("/close-batches", response_model=CloseSchedulesResponse)
def close_batches(
    payload: BatchIdsRequest,
    actor: str | None = Header(default=None, alias="X-Actor"),
    db: Session = Depends(get_db),
) -> CloseSchedulesResponse:
    return proposal_manager.close_for_batches(db, payload.batchIds, actor=actor)


@router.post("/close-session", response_model=CloseSchedulesResponse)
def close_session(
    payload: SessionIdRequest,
    actor: str | None = Header(default=None, alias="X-Actor"),
    db: Session = Depends(get_db),
) -> CloseSchedulesResponse:
    return proposal_manager.close_for_session(db, payload.sessionId, actor=actor)


@router.post("/reopen-batches", response_model=ReopenSchedulesResponse)
def reopen_batches(
    payload: BatchIdsRequest,
    actor: str | None = Header(default=None, alias="X-Actor"),
    db: Session = Depends(get_db),
) -> ReopenSchedulesResponse:
    return proposal_manager.reopen_for_batches(db, payload.batchIds, actor=actor)


@router.get("/status-summary", response_model=StatusSummaryOut)
def get_status_summary(
    batch_ids: str | None = Query(default=None, alias="batchIds"),
    db: Session = Depends(get_db),
) -> StatusSummaryOut:
    return status_summary(db, parse_id_list(batch_ids))


@router.get("/active", response_model=list[CourseScheduleOut])
def list_active_schedules(
    batch_ids: str | None = Query(default=None, alias="batchIds"),
    db: Session = Depends(get_db),
) -> list[CourseScheduleOut]:
    rows = proposal_manager.active_schedules(db, parse_id_list(batch_ids))
    return [proposal_manager.schedule_to_out(row) for row in rows]
