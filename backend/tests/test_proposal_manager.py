import gc
import threading

import pytest
from sqlalchemy.exc import OperationalError

from classplanner.core.exceptions import ApplyConflict, ResourceNotFoundError, StateError
from classplanner.models import ActivityLog, CourseSchedule, ScheduleStatus
from classplanner.schemas.scheduler import GenerateScheduleRequest
from classplanner.services import proposal_manager
from classplanner.services.conflict_service import check_conflicts
from classplanner.services.generation import generate_schedule
from classplanner.services.status_reporter import status_summary


@pytest.fixture()
def timetable(seed):
    session = seed.session()
    department = seed.department()
    lecture_room = seed.room("L1", "lecture")
    seed.room("LAB1", "laboratory")
    theory_teacher = seed.teacher()
    batch = seed.batch(session, department, "CSE-1A")
    theory = seed.course(session, batch, "CSE101", teacher=theory_teacher)
    seed.course(session, batch, "CSE102", "lab", teacher=seed.teacher())
    return {
        "session": session,
        "department": department,
        "batch": batch,
        "theory": theory,
        "theory_teacher": theory_teacher,
        "lecture_room": lecture_room,
    }


def _generate(db, timetable):
    return generate_schedule(db, GenerateScheduleRequest(sessionId=timetable["session"].id)).proposal


def _rows(db, **filters):
    return db.query(CourseSchedule).filter_by(**filters).all()


def test_apply_writes_rows_and_closes_previous_ones(db_session, seed, timetable):
    old = seed.schedule(
        timetable["session"],
        timetable["batch"],
        timetable["theory"],
        days=["Thursday"],
        start="14:00",
        end="15:15",
        teacher=timetable["theory_teacher"],
        room=timetable["lecture_room"],
    )
    proposal = _generate(db_session, timetable)

    response = proposal_manager.apply_proposal(db_session, proposal.id, actor="registrar")

    assert response.success is True
    assert response.schedulesCreated == 2
    assert response.schedulesClosed == 1
    db_session.refresh(proposal)
    assert proposal.status.value == "approved"
    assert proposal.applied_at is not None

    created = _rows(db_session, proposal_id=proposal.id)
    assert len(created) == 2
    assert all(row.status == ScheduleStatus.active for row in created)
    db_session.refresh(old)
    assert old.status == ScheduleStatus.closed

    actions = [item.action for item in db_session.query(ActivityLog).all()]
    assert "schedule.proposal.apply" in actions


def test_apply_twice_is_a_state_error(db_session, timetable):
    proposal = _generate(db_session, timetable)
    proposal_manager.apply_proposal(db_session, proposal.id)

    with pytest.raises(StateError) as exc_info:
        proposal_manager.apply_proposal(db_session, proposal.id)
    assert exc_info.value.status_code == 409


def test_failed_apply_leaves_proposal_pending(db_session, seed, timetable, monkeypatch):
    old = seed.schedule(
        timetable["session"],
        timetable["batch"],
        timetable["theory"],
        days=["Thursday"],
        start="14:00",
        end="15:15",
    )
    proposal = _generate(db_session, timetable)

    original = proposal_manager._schedule_row
    calls = {"count": 0}

    def flaky_row(item, assignment):
        calls["count"] += 1
        if calls["count"] == 2:
            raise OperationalError("INSERT INTO course_schedules", {}, Exception("disk I/O error"))
        return original(item, assignment)

    monkeypatch.setattr(proposal_manager, "_schedule_row", flaky_row)

    with pytest.raises(ApplyConflict):
        proposal_manager.apply_proposal(db_session, proposal.id)

    db_session.expire_all()
    assert proposal_manager.get_proposal(db_session, proposal.id).status.value == "pending"
    assert _rows(db_session, proposal_id=proposal.id) == []
    assert db_session.get(CourseSchedule, old.id).status == ScheduleStatus.active

    # Retrying once the store recovers succeeds.
    monkeypatch.setattr(proposal_manager, "_schedule_row", original)
    assert proposal_manager.apply_proposal(db_session, proposal.id).schedulesCreated == 2


def test_apply_rejects_proposal_that_clashes_with_live_schedule(db_session, seed, timetable):
    proposal = _generate(db_session, timetable)
    slot = next(item for item in proposal.schedule_data if item["courseCode"] == "CSE101")

    other = seed.batch(timetable["session"], timetable["department"], "CSE-1B")
    seed.schedule(
        timetable["session"],
        other,
        timetable["theory"],
        days=slot["daysOfWeek"],
        start=slot["startTime"],
        end=slot["endTime"],
        teacher=timetable["theory_teacher"],
    )

    with pytest.raises(ApplyConflict) as exc_info:
        proposal_manager.apply_proposal(db_session, proposal.id)
    assert exc_info.value.details["resource"] == "teacher"

    db_session.expire_all()
    assert proposal_manager.get_proposal(db_session, proposal.id).status.value == "pending"


def test_reject_then_discard(db_session, timetable):
    proposal = _generate(db_session, timetable)

    rejected = proposal_manager.reject_proposal(db_session, proposal.id)
    assert rejected.status.value == "rejected"
    with pytest.raises(StateError):
        proposal_manager.reject_proposal(db_session, proposal.id)
    with pytest.raises(StateError):
        proposal_manager.apply_proposal(db_session, proposal.id)

    proposal_manager.discard_proposal(db_session, proposal.id)
    with pytest.raises(ResourceNotFoundError):
        proposal_manager.get_proposal(db_session, proposal.id)


def test_discard_pending_but_not_approved(db_session, timetable):
    pending = _generate(db_session, timetable)
    proposal_manager.discard_proposal(db_session, pending.id)
    assert proposal_manager.list_proposals(db_session, timetable["session"].id) == []

    approved = _generate(db_session, timetable)
    proposal_manager.apply_proposal(db_session, approved.id)
    with pytest.raises(StateError):
        proposal_manager.discard_proposal(db_session, approved.id)


def test_list_proposals_filters_by_session(db_session, seed, timetable):
    first = _generate(db_session, timetable)
    second = _generate(db_session, timetable)

    listed = proposal_manager.list_proposals(db_session, timetable["session"].id)
    assert {item.id for item in listed} == {first.id, second.id}
    assert proposal_manager.list_proposals(db_session, "another-session") == []


def test_close_and_reopen_batches(db_session, timetable):
    proposal = _generate(db_session, timetable)
    proposal_manager.apply_proposal(db_session, proposal.id)

    closed = proposal_manager.close_for_batches(db_session, [timetable["batch"].id])
    assert closed.closedCount == 2
    assert status_summary(db_session).model_dump() == {"active": 0, "closed": 2, "archived": 0}

    reopened = proposal_manager.reopen_for_batches(db_session, [timetable["batch"].id])
    assert reopened.reopenedCount == 2
    assert status_summary(db_session).active == 2


def test_reopen_skips_rows_that_clash_with_active_schedule(db_session, seed, timetable):
    first = seed.schedule(
        timetable["session"], timetable["batch"], timetable["theory"],
        days=["Sunday"], start="08:30", end="09:45", status="closed",
    )
    seed.schedule(
        timetable["session"], timetable["batch"], timetable["theory"],
        days=["Sunday"], start="09:00", end="10:15", status="active",
    )

    result = proposal_manager.reopen_for_batches(db_session, [timetable["batch"].id])

    assert result.reopenedCount == 0
    assert "left closed" in result.message
    db_session.refresh(first)
    assert first.status == ScheduleStatus.closed


def test_close_for_session(db_session, seed, timetable):
    other_session = seed.session("Fall 2026")
    seed.schedule(timetable["session"], timetable["batch"], timetable["theory"], days=["Sunday"], start="08:30", end="09:45")
    seed.schedule(other_session, timetable["batch"], timetable["theory"], days=["Monday"], start="08:30", end="09:45")

    result = proposal_manager.close_for_session(db_session, timetable["session"].id)

    assert result.closedCount == 1
    assert status_summary(db_session).model_dump() == {"active": 1, "closed": 1, "archived": 0}


def test_status_summary_filters_by_batch(db_session, seed, timetable):
    other = seed.batch(timetable["session"], timetable["department"], "CSE-1B")
    seed.schedule(timetable["session"], timetable["batch"], timetable["theory"], days=["Sunday"], start="08:30", end="09:45")
    seed.schedule(timetable["session"], other, timetable["theory"], days=["Sunday"], start="10:00", end="11:15", status="archived")

    assert status_summary(db_session, [timetable["batch"].id]).model_dump() == {"active": 1, "closed": 0, "archived": 0}
    assert status_summary(db_session).model_dump() == {"active": 1, "closed": 0, "archived": 1}


def test_check_conflicts_reports_overlaps_touching_selected_batches(db_session, seed, timetable):
    other = seed.batch(timetable["session"], timetable["department"], "CSE-1B")
    third = seed.batch(timetable["session"], timetable["department"], "CSE-1C")
    seed.schedule(
        timetable["session"], timetable["batch"], timetable["theory"],
        days=["Sunday"], start="08:30", end="09:45", room=timetable["lecture_room"],
    )
    seed.schedule(
        timetable["session"], other, timetable["theory"],
        days=["Sunday", "Wednesday"], start="09:00", end="10:15", room=timetable["lecture_room"],
    )
    seed.schedule(
        timetable["session"], third, timetable["theory"],
        days=["Wednesday"], start="14:00", end="15:15", status="closed", room=timetable["lecture_room"],
    )

    report = check_conflicts(db_session, [timetable["batch"].id], timetable["session"].id)
    assert report.hasConflicts is True
    assert [item.type for item in report.conflicts] == ["room_conflict"]
    assert report.conflicts[0].day == "Sunday"
    assert "L1" in report.conflicts[0].description

    assert check_conflicts(db_session, [third.id]).count == 0


@pytest.fixture()
def shared_teacher_proposals(threaded_session_factory, threaded_seed):
    """Two pending proposals for different batches that book the same teacher at the same time."""
    session = threaded_seed.session()
    department = threaded_seed.department()
    threaded_seed.room("L1", "lecture")
    threaded_seed.room("L2", "lecture")
    teacher = threaded_seed.teacher()
    proposal_ids = []
    for name, code, semester in (("CSE-1A", "CSE101", 1), ("CSE-3A", "CSE301", 3)):
        batch = threaded_seed.batch(session, department, name, semester=semester)
        threaded_seed.course(session, batch, code, teacher=teacher)
        db = threaded_session_factory()
        try:
            request = GenerateScheduleRequest(sessionId=session.id, selectionMode="single_batch", batchIds=[batch.id])
            proposal_ids.append(generate_schedule(db, request).proposal.id)
        finally:
            db.close()
    return session.id, proposal_ids


def _apply_in_thread(session_factory, proposal_id, outcomes):
    db = session_factory()
    try:
        proposal_manager.apply_proposal(db, proposal_id)
        outcomes[proposal_id] = "approved"
    except (ApplyConflict, StateError) as exc:
        outcomes[proposal_id] = type(exc).__name__
    finally:
        db.close()


def test_apply_waits_for_the_session_lock(threaded_session_factory, shared_teacher_proposals):
    session_id, (proposal_id, _) = shared_teacher_proposals
    outcomes = {}
    worker = threading.Thread(target=_apply_in_thread, args=(threaded_session_factory, proposal_id, outcomes))

    with proposal_manager._session_lock(session_id):
        worker.start()
        worker.join(timeout=0.3)
        assert worker.is_alive()
        assert outcomes == {}

    worker.join(timeout=10)
    assert outcomes == {proposal_id: "approved"}


def test_concurrent_applies_for_one_session_approve_only_one(threaded_session_factory, shared_teacher_proposals):
    _, proposal_ids = shared_teacher_proposals
    outcomes = {}
    workers = [
        threading.Thread(target=_apply_in_thread, args=(threaded_session_factory, proposal_id, outcomes))
        for proposal_id in proposal_ids
    ]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=10)

    assert sorted(outcomes.values()) == ["ApplyConflict", "approved"]
    db = threaded_session_factory()
    try:
        active = db.query(CourseSchedule).filter_by(status=ScheduleStatus.active).all()
        assert len(active) == 1
    finally:
        db.close()


def test_apply_lock_registry_forgets_idle_sessions():
    lock = proposal_manager._session_lock("idle-session")
    assert proposal_manager._session_lock("idle-session") is lock

    del lock
    gc.collect()
    assert "idle-session" not in proposal_manager._apply_locks
