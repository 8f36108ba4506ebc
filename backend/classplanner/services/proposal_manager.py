from __future__ import annotations

from datetime import datetime, timezone
import logging
import threading
import weakref

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from classplanner.core.exceptions import ApplyConflict, ResourceNotFoundError, StateError
from classplanner.models.course_schedule import CourseSchedule, ScheduleStatus
from classplanner.models.schedule_proposal import ProposalStatus, ScheduleProposal
from classplanner.schemas.scheduler import (
    ApplyProposalResponse,
    CloseSchedulesResponse,
    CourseScheduleOut,
    ReopenSchedulesResponse,
    ScheduleProposalOut,
)
from classplanner.services.audit import log_activity
from classplanner.services.constraint_index import ConstraintIndex, ReservationConflict
from classplanner.services.placement_planner import ClassAssignment, PlacementResult
from classplanner.services.scope import seed_constraint_index
from classplanner.schemas.time_slots import parse_time_to_minutes

logger = logging.getLogger(__name__)

# Entries drop out once no apply holds a reference to the lock.
_apply_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
_apply_locks_guard = threading.Lock()


def _session_lock(session_id: str) -> threading.Lock:
    with _apply_locks_guard:
        lock = _apply_locks.get(session_id)
        if lock is None:
            lock = threading.Lock()
            _apply_locks[session_id] = lock
        return lock


def create_proposal(
    db: Session,
    *,
    session_id: str,
    result: PlacementResult,
    generated_by: str | None = None,
    options: dict | None = None,
) -> ScheduleProposal:
    """Persist a planner result as a pending proposal, even when some units stayed unscheduled."""
    proposal = ScheduleProposal(
        session_id=session_id,
        generated_by=generated_by,
        status=ProposalStatus.pending,
        schedule_data=[item.to_payload() for item in result.assignments],
        unscheduled=[item.to_payload() for item in result.unscheduled],
        proposal_metadata={
            "itemCount": len(result.assignments),
            "unscheduledCount": len(result.unscheduled),
            "options": options or {},
        },
    )
    db.add(proposal)
    db.flush()
    log_activity(
        db,
        actor=generated_by,
        action="schedule.proposal.create",
        entity_type="schedule_proposal",
        entity_id=proposal.id,
        details={"session_id": session_id, "items": len(result.assignments), "unscheduled": len(result.unscheduled)},
    )
    db.commit()
    db.refresh(proposal)
    return proposal


def proposal_to_out(proposal: ScheduleProposal) -> ScheduleProposalOut:
    return ScheduleProposalOut(
        id=proposal.id,
        sessionId=proposal.session_id,
        generatedBy=proposal.generated_by,
        status=proposal.status,
        scheduleData=proposal.schedule_data or [],
        unscheduled=proposal.unscheduled or [],
        metadata=proposal.proposal_metadata or {},
        createdAt=proposal.created_at,
        appliedAt=proposal.applied_at,
    )


def list_proposals(db: Session, session_id: str | None = None) -> list[ScheduleProposal]:
    query = select(ScheduleProposal)
    if session_id:
        query = query.where(ScheduleProposal.session_id == session_id)
    query = query.order_by(ScheduleProposal.created_at.desc(), ScheduleProposal.id.desc())
    return list(db.execute(query).scalars().all())


def get_proposal(db: Session, proposal_id: str) -> ScheduleProposal:
    proposal = db.get(ScheduleProposal, proposal_id)
    if proposal is None:
        raise ResourceNotFoundError("Proposal", proposal_id)
    return proposal


def _schedule_row(proposal: ScheduleProposal, assignment: ClassAssignment) -> CourseSchedule:
    return CourseSchedule(
        session_id=proposal.session_id,
        batch_id=assignment.batch_id,
        session_course_id=assignment.session_course_id,
        teacher_id=assignment.teacher_id,
        classroom_id=assignment.classroom_id,
        days_of_week=list(assignment.days_of_week),
        start_time=assignment.start_time,
        end_time=assignment.end_time,
        class_type=assignment.class_type,
        status=ScheduleStatus.active,
        proposal_id=proposal.id,
    )


def _ensure_applicable(db: Session, assignments: list[ClassAssignment], batch_ids: list[str]) -> None:
    """Re-check the proposal against the live schedule that will remain active after apply."""
    remaining = list(
        db.execute(
            select(CourseSchedule).where(
                CourseSchedule.status == ScheduleStatus.active,
                CourseSchedule.batch_id.not_in(batch_ids),
            )
        )
        .scalars()
        .all()
    )
    index = seed_constraint_index(remaining)
    for assignment in assignments:
        for day in assignment.days_of_week:
            for kind, resource_id in (
                ("teacher", assignment.teacher_id),
                ("room", assignment.classroom_id),
                ("batch", assignment.batch_id),
            ):
                try:
                    index.reserve(kind, resource_id, day, assignment.start, assignment.end)
                except ReservationConflict as exc:
                    raise ApplyConflict(
                        "Proposal clashes with the current active schedule; generate a new proposal",
                        details={
                            "resource": kind,
                            "resourceId": resource_id,
                            "day": day,
                            "startTime": assignment.start_time,
                            "endTime": assignment.end_time,
                            "courseCode": assignment.course_code,
                            "batchId": assignment.batch_id,
                        },
                    ) from exc


def apply_proposal(db: Session, proposal_id: str, *, actor: str | None = None) -> ApplyProposalResponse:
    """Write a pending proposal into the live schedule.

    Prior active rows of the touched batches are closed, the proposal's
    assignments become active rows and the proposal is approved, all in one
    transaction. Any failure rolls back and leaves the proposal pending.
    """
    proposal = get_proposal(db, proposal_id)
    with _session_lock(proposal.session_id):
        db.refresh(proposal)
        if proposal.status != ProposalStatus.pending:
            raise StateError(
                f"Only pending proposals can be applied; this one is {proposal.status.value}",
                details={"proposalId": proposal.id, "status": proposal.status.value},
            )

        logger.info(
            "SCHEDULE PROPOSAL APPLY START | proposal_id=%s | session_id=%s | items=%s | actor=%s",
            proposal.id,
            proposal.session_id,
            len(proposal.schedule_data or []),
            actor,
        )
        try:
            assignments = [ClassAssignment.from_payload(item) for item in proposal.schedule_data or []]
            batch_ids = sorted({item.batch_id for item in assignments})
            _ensure_applicable(db, assignments, batch_ids)

            closed = 0
            if batch_ids:
                closed = db.execute(
                    update(CourseSchedule)
                    .where(
                        CourseSchedule.batch_id.in_(batch_ids),
                        CourseSchedule.status == ScheduleStatus.active,
                    )
                    .values(status=ScheduleStatus.closed)
                    .execution_options(synchronize_session=False)
                ).rowcount

            for assignment in assignments:
                db.add(_schedule_row(proposal, assignment))
                db.flush()

            proposal.status = ProposalStatus.approved
            proposal.applied_at = datetime.now(timezone.utc)
            log_activity(
                db,
                actor=actor,
                action="schedule.proposal.apply",
                entity_type="schedule_proposal",
                entity_id=proposal.id,
                details={"created": len(assignments), "closed": closed, "batch_ids": batch_ids},
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("SCHEDULE PROPOSAL APPLY FAILED | proposal_id=%s", proposal_id)
            raise ApplyConflict(
                "Failed to write the proposal into the schedule; it is still pending and can be retried",
                details={"proposalId": proposal_id},
            ) from exc
        except Exception:
            db.rollback()
            logger.warning("SCHEDULE PROPOSAL APPLY ABORTED | proposal_id=%s", proposal_id)
            raise

    logger.info(
        "SCHEDULE PROPOSAL APPLY COMPLETE | proposal_id=%s | created=%s | closed=%s",
        proposal_id,
        len(assignments),
        closed,
    )
    return ApplyProposalResponse(
        schedulesCreated=len(assignments),
        schedulesClosed=closed,
        message=f"Applied proposal: {len(assignments)} schedules created, {closed} previous schedules closed",
    )


def reject_proposal(db: Session, proposal_id: str, *, actor: str | None = None) -> ScheduleProposal:
    proposal = get_proposal(db, proposal_id)
    if proposal.status != ProposalStatus.pending:
        raise StateError(
            f"Only pending proposals can be rejected; this one is {proposal.status.value}",
            details={"proposalId": proposal.id, "status": proposal.status.value},
        )
    proposal.status = ProposalStatus.rejected
    log_activity(
        db,
        actor=actor,
        action="schedule.proposal.reject",
        entity_type="schedule_proposal",
        entity_id=proposal.id,
    )
    db.commit()
    db.refresh(proposal)
    return proposal


def discard_proposal(db: Session, proposal_id: str, *, actor: str | None = None) -> None:
    proposal = get_proposal(db, proposal_id)
    if proposal.status == ProposalStatus.approved:
        raise StateError(
            "Applied proposals are part of the schedule history and cannot be deleted",
            details={"proposalId": proposal.id, "status": proposal.status.value},
        )
    log_activity(
        db,
        actor=actor,
        action="schedule.proposal.discard",
        entity_type="schedule_proposal",
        entity_id=proposal.id,
        details={"status": proposal.status.value},
    )
    db.delete(proposal)
    db.commit()


def _bulk_status(db: Session, criteria: list, *, source: ScheduleStatus, target: ScheduleStatus) -> int:
    return db.execute(
        update(CourseSchedule)
        .where(*criteria, CourseSchedule.status == source)
        .values(status=target)
        .execution_options(synchronize_session=False)
    ).rowcount


def close_for_batches(db: Session, batch_ids: list[str], *, actor: str | None = None) -> CloseSchedulesResponse:
    count = _bulk_status(
        db,
        [CourseSchedule.batch_id.in_(batch_ids)],
        source=ScheduleStatus.active,
        target=ScheduleStatus.closed,
    )
    log_activity(
        db,
        actor=actor,
        action="schedule.close.batches",
        entity_type="course_schedule",
        details={"batch_ids": list(batch_ids), "count": count},
    )
    db.commit()
    logger.info("SCHEDULES CLOSED | scope=batches | batch_ids=%s | count=%s", ",".join(batch_ids), count)
    return CloseSchedulesResponse(closedCount=count, message=f"Closed {count} schedules for {len(batch_ids)} batches")


def close_for_session(db: Session, session_id: str, *, actor: str | None = None) -> CloseSchedulesResponse:
    count = _bulk_status(
        db,
        [CourseSchedule.session_id == session_id],
        source=ScheduleStatus.active,
        target=ScheduleStatus.closed,
    )
    log_activity(
        db,
        actor=actor,
        action="schedule.close.session",
        entity_type="academic_session",
        entity_id=session_id,
        details={"count": count},
    )
    db.commit()
    logger.info("SCHEDULES CLOSED | scope=session | session_id=%s | count=%s", session_id, count)
    return CloseSchedulesResponse(closedCount=count, message=f"Closed {count} schedules for the session")


def reopen_for_batches(db: Session, batch_ids: list[str], *, actor: str | None = None) -> ReopenSchedulesResponse:
    """Move closed rows of the batches back to active, newest first.

    A closed row that would clash with what is active (or already reopened)
    stays closed and is counted as skipped.
    """
    active = list(
        db.execute(select(CourseSchedule).where(CourseSchedule.status == ScheduleStatus.active)).scalars().all()
    )
    index = seed_constraint_index(active)
    closed_rows = (
        db.execute(
            select(CourseSchedule)
            .where(CourseSchedule.batch_id.in_(batch_ids), CourseSchedule.status == ScheduleStatus.closed)
            .order_by(CourseSchedule.created_at.desc(), CourseSchedule.id)
        )
        .scalars()
        .all()
    )

    reopened = 0
    skipped = 0
    for row in closed_rows:
        if _fits(index, row):
            row.status = ScheduleStatus.active
            reopened += 1
        else:
            skipped += 1

    log_activity(
        db,
        actor=actor,
        action="schedule.reopen.batches",
        entity_type="course_schedule",
        details={"batch_ids": list(batch_ids), "count": reopened, "skipped": skipped},
    )
    db.commit()
    logger.info(
        "SCHEDULES REOPENED | batch_ids=%s | count=%s | skipped=%s",
        ",".join(batch_ids),
        reopened,
        skipped,
    )
    message = f"Reopened {reopened} schedules"
    if skipped:
        message += f"; {skipped} left closed because they clash with active schedules"
    return ReopenSchedulesResponse(reopenedCount=reopened, message=message)


def _fits(index: ConstraintIndex, row: CourseSchedule) -> bool:
    try:
        start = parse_time_to_minutes(row.start_time)
        end = parse_time_to_minutes(row.end_time)
    except ValueError:
        return False
    days = row.days_of_week or []
    resources = (("teacher", row.teacher_id), ("room", row.classroom_id), ("batch", row.batch_id))
    if not all(index.is_free(kind, resource_id, day, start, end) for day in days for kind, resource_id in resources):
        return False
    for day in days:
        for kind, resource_id in resources:
            index.reserve(kind, resource_id, day, start, end)
    return True


def active_schedules(db: Session, batch_ids: list[str] | None = None) -> list[CourseSchedule]:
    query = select(CourseSchedule).where(CourseSchedule.status == ScheduleStatus.active)
    if batch_ids:
        query = query.where(CourseSchedule.batch_id.in_(batch_ids))
    query = query.order_by(CourseSchedule.batch_id, CourseSchedule.start_time, CourseSchedule.id)
    return list(db.execute(query).scalars().all())


def schedule_to_out(row: CourseSchedule) -> CourseScheduleOut:
    return CourseScheduleOut(
        id=row.id,
        sessionId=row.session_id,
        batchId=row.batch_id,
        sessionCourseId=row.session_course_id,
        teacherId=row.teacher_id,
        classroomId=row.classroom_id,
        daysOfWeek=list(row.days_of_week or []),
        startTime=row.start_time,
        endTime=row.end_time,
        classType=row.class_type,
        status=row.status.value,
        proposalId=row.proposal_id,
    )
