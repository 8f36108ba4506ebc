"""Seed a small academic session that the schedule generator can plan end to end.

Run:
  PYTHONPATH=backend python scripts/seed_demo_scheduling_data.py
"""

from __future__ import annotations

import os

from sqlalchemy import select

from classplanner.db.bootstrap import ensure_runtime_schema
from classplanner.db.session import SessionLocal
from classplanner.models import (
    AcademicSession,
    Batch,
    Classroom,
    Course,
    CourseType,
    Department,
    InstructorAssignment,
    RoomType,
    SessionCourse,
    Shift,
    Teacher,
)

SESSION_NAME = os.getenv("DEMO_SESSION_NAME", "Spring 2026")

DEPARTMENTS = [
    ("Computer Science and Engineering", "CSE"),
    ("Electrical and Electronic Engineering", "EEE"),
]

ROOMS = [
    ("101", RoomType.lecture, 60),
    ("102", RoomType.lecture, 60),
    ("201", RoomType.seminar, 40),
    ("LAB-1", RoomType.laboratory, 40),
    ("LAB-2", RoomType.computer_lab, 40),
]

# (department short name, batch name, semester, shift, students)
BATCHES = [
    ("CSE", "CSE-1A", 1, Shift.day, 45),
    ("CSE", "CSE-1E", 1, Shift.evening, 35),
    ("EEE", "EEE-1A", 1, Shift.day, 40),
]

# (department short name, semester, code, name, type, sessions per week)
COURSES = [
    ("CSE", 1, "CSE101", "Structured Programming", CourseType.theory, 2),
    ("CSE", 1, "CSE102", "Structured Programming Lab", CourseType.lab, 1),
    ("CSE", 1, "MAT101", "Differential Calculus", CourseType.theory, 2),
    ("EEE", 1, "EEE101", "Electrical Circuits", CourseType.theory, 2),
    ("EEE", 1, "EEE102", "Electrical Circuits Lab", CourseType.lab, 1),
    ("EEE", 1, "EEE150", "Design Project", CourseType.project, 1),
]

TEACHERS = [
    ("Dr. Farhana Islam", "farhana.islam@demo.edu", "CSE"),
    ("Md. Tanvir Ahmed", "tanvir.ahmed@demo.edu", "CSE"),
    ("Dr. Shafiq Rahman", "shafiq.rahman@demo.edu", "EEE"),
    ("Nusrat Jahan", "nusrat.jahan@demo.edu", "EEE"),
]


def _get_or_create(session, model, lookup: dict, **values):
    record = session.execute(select(model).filter_by(**lookup)).scalar_one_or_none()
    if record is None:
        record = model(**lookup, **values)
        session.add(record)
        session.flush()
    return record


def main() -> None:
    ensure_runtime_schema()
    with SessionLocal() as session:
        academic_session = _get_or_create(session, AcademicSession, {"name": SESSION_NAME})
        departments = {
            short: _get_or_create(session, Department, {"name": name}, short_name=short) for name, short in DEPARTMENTS
        }
        for number, room_type, capacity in ROOMS:
            _get_or_create(session, Classroom, {"room_number": number}, room_type=room_type, capacity=capacity)

        teachers = [
            _get_or_create(session, Teacher, {"email": email}, full_name=name, department_id=departments[dept].id)
            for name, email, dept in TEACHERS
        ]
        teachers_by_dept: dict[str, list[Teacher]] = {}
        for teacher, (_, _, dept) in zip(teachers, TEACHERS):
            teachers_by_dept.setdefault(dept, []).append(teacher)

        batches = [
            _get_or_create(
                session,
                Batch,
                {"name": name, "session_id": academic_session.id, "department_id": departments[dept].id},
                semester=semester,
                shift=shift,
                student_count=students,
            )
            for dept, name, semester, shift, students in BATCHES
        ]

        assignments = 0
        for index, (dept, semester, code, name, course_type, sessions) in enumerate(COURSES):
            course = _get_or_create(
                session, Course, {"code": code}, name=name, course_type=course_type, sessions_per_week=sessions
            )
            offering = _get_or_create(
                session,
                SessionCourse,
                {
                    "session_id": academic_session.id,
                    "course_id": course.id,
                    "department_id": departments[dept].id,
                    "semester": semester,
                },
            )
            pool = teachers_by_dept[dept]
            for position, batch in enumerate(item for item in batches if item.department_id == departments[dept].id):
                teacher = pool[(index + position) % len(pool)]
                _get_or_create(
                    session,
                    InstructorAssignment,
                    {"batch_id": batch.id, "session_course_id": offering.id},
                    teacher_id=teacher.id,
                )
                assignments += 1

        session.commit()
        print(f"Session ready: {academic_session.name} ({academic_session.id})")
        print(f"  batches={len(batches)} | rooms={len(ROOMS)} | teachers={len(teachers)} | assignments={assignments}")
        print("\nGenerate a proposal with:")
        print(f'  POST /api/ai-schedules/generate {{"sessionId": "{academic_session.id}"}}')


if __name__ == "__main__":
    main()
