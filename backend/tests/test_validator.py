import pytest
from pydantic import ValidationError

from classplanner.core.exceptions import ResourceNotFoundError, ScopeError
from classplanner.schemas.scheduler import ScheduleScopeRequest, ValidateScheduleRequest
from classplanner.services.scope import load_enrolled_courses, resolve_batches
from classplanner.services.validator import validate


@pytest.fixture()
def catalog(seed):
    session = seed.session()
    cse = seed.department()
    eee = seed.department("Electrical Engineering", "EEE")
    seed.room("L1", "lecture")
    seed.room("LAB1", "laboratory")
    teacher = seed.teacher("Dr. Rahman")
    day_batch = seed.batch(session, cse, "CSE-1A", shift="day")
    evening_batch = seed.batch(session, eee, "EEE-1E", shift="evening")
    seed.course(session, day_batch, "CSE101", teacher=teacher)
    seed.course(session, day_batch, "CSE102", "lab", teacher=teacher)
    eee_course = seed.course(session, evening_batch, "EEE101")
    return {
        "session": session,
        "cse": cse,
        "eee": eee,
        "day_batch": day_batch,
        "evening_batch": evening_batch,
        "eee_course": eee_course,
        "teacher": teacher,
    }


def test_missing_instructor_makes_scope_invalid(db_session, catalog):
    result = validate(db_session, ValidateScheduleRequest(sessionId=catalog["session"].id))

    assert result.valid is False
    assert len(result.unassignedCourses) == 1
    missing = result.unassignedCourses[0]
    assert missing.batchId == catalog["evening_batch"].id
    assert missing.batchName == "EEE-1E"
    assert missing.courseCode == "EEE101"
    assert result.errors == ["EEE101 has no instructor assigned for batch EEE-1E"]


def test_fully_assigned_department_is_valid(db_session, catalog):
    result = validate(
        db_session,
        ValidateScheduleRequest(
            sessionId=catalog["session"].id,
            selectionMode="department",
            departmentId=catalog["cse"].id,
        ),
    )

    assert result.valid is True
    assert result.errors == []
    assert result.unassignedCourses == []


def test_assigning_the_instructor_clears_the_error(db_session, seed, catalog):
    seed.assign(catalog["evening_batch"], catalog["eee_course"], catalog["teacher"])

    result = validate(db_session, ValidateScheduleRequest(sessionId=catalog["session"].id))
    assert result.valid is True


def test_batch_without_courses_only_warns(db_session, seed, catalog):
    seed.batch(catalog["session"], catalog["cse"], "CSE-3A", semester=3)

    result = validate(
        db_session,
        ValidateScheduleRequest(sessionId=catalog["session"].id, selectionMode="department", departmentId=catalog["cse"].id),
    )
    assert result.valid is True
    assert any("CSE-3A" in warning for warning in result.warnings)


def test_target_shift_filters_batches(db_session, catalog):
    request = ScheduleScopeRequest(sessionId=catalog["session"].id, targetShift="evening")
    batches = resolve_batches(db_session, request)
    assert [batch.name for batch in batches] == ["EEE-1E"]


def test_enrolled_courses_follow_department_and_semester(db_session, seed, catalog):
    later = seed.batch(catalog["session"], catalog["cse"], "CSE-2A", semester=2)
    seed.course(catalog["session"], later, "CSE201", teacher=catalog["teacher"])

    enrolled = load_enrolled_courses(db_session, catalog["session"].id, [catalog["day_batch"], later])
    pairs = [(item.batch.name, item.course.code) for item in enrolled]
    assert pairs == [("CSE-1A", "CSE101"), ("CSE-1A", "CSE102"), ("CSE-2A", "CSE201")]
    assert all(item.teacher is not None for item in enrolled)


def test_empty_scope_raises_scope_error(db_session, catalog):
    request = ScheduleScopeRequest(
        sessionId=catalog["session"].id,
        selectionMode="department",
        departmentId=catalog["cse"].id,
        targetShift="evening",
    )
    with pytest.raises(ScopeError) as exc_info:
        validate(db_session, request)
    assert exc_info.value.status_code == 400


def test_foreign_batch_id_raises_scope_error(db_session, catalog):
    request = ScheduleScopeRequest(
        sessionId=catalog["session"].id,
        selectionMode="multi_batch",
        batchIds=[catalog["day_batch"].id, "not-a-batch"],
    )
    with pytest.raises(ScopeError) as exc_info:
        resolve_batches(db_session, request)
    assert exc_info.value.details["missingBatchIds"] == ["not-a-batch"]


def test_unknown_session_is_not_found(db_session, catalog):
    with pytest.raises(ResourceNotFoundError):
        validate(db_session, ValidateScheduleRequest(sessionId="missing-session"))


def test_selection_mode_requirements_are_checked_by_the_schema():
    with pytest.raises(ValidationError):
        ScheduleScopeRequest(sessionId="s1", selectionMode="department")
    with pytest.raises(ValidationError):
        ScheduleScopeRequest(sessionId="s1", selectionMode="single_batch", batchIds=["a", "b"])
    with pytest.raises(ValidationError):
        ScheduleScopeRequest(sessionId="s1", selectionMode="multi_batch", batchIds=[])

    request = ScheduleScopeRequest(sessionId="s1", selectionMode="multi_batch", batchIds=[" a", "a", "b"])
    assert request.batchIds == ["a", "b"]
