import os

# The application engine is built at import time; point it at SQLite before importing classplanner.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from classplanner.api.deps import get_db
from classplanner.db.base import Base
from classplanner.main import app
from classplanner.models import (
    AcademicSession,
    Batch,
    Classroom,
    Course,
    CourseSchedule,
    CourseType,
    Department,
    InstructorAssignment,
    RoomType,
    ScheduleStatus,
    SessionCourse,
    Shift,
    Teacher,
)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def threaded_session_factory(tmp_path):
    # One connection per session, so worker threads never share a SQLite connection.
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'classplanner.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


class Seeder:
    """Creates the academic records generation reads, committing after each call."""

    def __init__(self, db):
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def _save(self, item):
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def session(self, name: str = "Spring 2026") -> AcademicSession:
        return self._save(AcademicSession(name=name))

    def department(self, name: str = "Computer Science", short_name: str = "CSE") -> Department:
        return self._save(Department(name=name, short_name=short_name))

    def batch(self, session, department, name: str, *, shift: str = "day", semester: int = 1, students: int = 40) -> Batch:
        return self._save(
            Batch(
                name=name,
                session_id=session.id,
                department_id=department.id,
                semester=semester,
                shift=Shift(shift),
                student_count=students,
            )
        )

    def room(self, number: str, room_type: str = "lecture", *, capacity: int = 60, active: bool = True) -> Classroom:
        return self._save(
            Classroom(room_number=number, building="Main", capacity=capacity, room_type=RoomType(room_type), is_active=active)
        )

    def teacher(self, name: str | None = None) -> Teacher:
        index = self._next()
        return self._save(Teacher(full_name=name or f"Teacher {index}", email=f"teacher{index}@example.edu"))

    def course(
        self,
        session,
        batch,
        code: str,
        course_type: str = "theory",
        *,
        teacher=None,
        sessions_per_week: int = 1,
    ) -> SessionCourse:
        course = self._save(
            Course(
                code=code,
                name=f"Course {code}",
                course_type=CourseType(course_type),
                sessions_per_week=sessions_per_week,
            )
        )
        offering = self._save(
            SessionCourse(
                session_id=session.id,
                course_id=course.id,
                department_id=batch.department_id,
                semester=batch.semester,
            )
        )
        if teacher is not None:
            self.assign(batch, offering, teacher)
        return offering

    def assign(self, batch, offering, teacher) -> InstructorAssignment:
        return self._save(InstructorAssignment(batch_id=batch.id, session_course_id=offering.id, teacher_id=teacher.id))

    def schedule(
        self,
        session,
        batch,
        offering,
        *,
        days,
        start: str,
        end: str,
        teacher=None,
        room=None,
        status: str = "active",
        class_type: str = "theory",
    ) -> CourseSchedule:
        return self._save(
            CourseSchedule(
                session_id=session.id,
                batch_id=batch.id,
                session_course_id=offering.id,
                teacher_id=teacher.id if teacher is not None else None,
                classroom_id=room.id if room is not None else None,
                days_of_week=list(days),
                start_time=start,
                end_time=end,
                class_type=class_type,
                status=ScheduleStatus(status),
            )
        )


@pytest.fixture()
def seed(db_session):
    return Seeder(db_session)


@pytest.fixture()
def threaded_seed(threaded_session_factory):
    db = threaded_session_factory()
    try:
        yield Seeder(db)
    finally:
        db.close()
