import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from classplanner.db.base import Base


class ProposalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ScheduleProposal(Base):
    __tablename__ = "schedule_proposals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    generated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[ProposalStatus] = mapped_column(
        SAEnum(ProposalStatus, name="proposal_status"),
        nullable=False,
        default=ProposalStatus.pending,
        index=True,
    )
    schedule_data: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    unscheduled: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    # `metadata` is reserved on declarative classes.
    proposal_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
