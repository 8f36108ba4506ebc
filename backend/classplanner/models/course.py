import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from classplanner.db.base import Base


class CourseType(str, Enum):
    theory = "theory"
    lab = "lab"
    project = "project"


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    course_type: Mapped[CourseType] = mapped_column(SAEnum(CourseType, name="course_type"), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    sessions_per_week: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SessionCourse(Base):
    """A course offered in one academic session to one department's semester."""

    __tablename__ = "session_courses"
    __table_args__ = (
        UniqueConstraint(
            "session_id",
            "course_id",
            "department_id",
            "semester",
            name="uq_session_courses_offering",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(36), nullable=False)
    department_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    semester: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
