import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from classplanner.db.base import Base


class Shift(str, Enum):
    day = "day"
    evening = "evening"


class Batch(Base):
    __tablename__ = "batches"
    __table_args__ = (
        UniqueConstraint("session_id", "department_id", "name", name="uq_batches_session_department_name"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    department_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    semester: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    shift: Mapped[Shift] = mapped_column(SAEnum(Shift, name="batch_shift"), nullable=False, default=Shift.day)
    student_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
