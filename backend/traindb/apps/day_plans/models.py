from __future__ import annotations

from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    JSON,
    String,
    Text,
    UniqueConstraint,
)

from traindb.database import Base
from traindb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TraineeDayPlanStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class EodStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DayPlanStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    COMPLETED = "COMPLETED"


class TaskStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class ReviewDecision(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TraineeDayPlan(Base):
    """
    A trainee's plan for one calendar day plus the end-of-day (EOD) report
    against it.

    tasks is a JSON list of dicts:
        {id, title, description, time_allocation, status, remarks, updated_at}
    """

    __tablename__ = "trainee_day_plans"
    __table_args__ = (
        UniqueConstraint("trainee_id", "plan_date", name="uq_trainee_day_plans_trainee_date"),
        Index("ix_trainee_day_plans_status_date", "status", "plan_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    trainee_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_date = Column(Date, nullable=False, index=True)

    tasks = Column(JSON, nullable=False, default=list)
    checkboxes = Column(JSON, nullable=False, default=dict)

    status = Column(
        SAEnum(TraineeDayPlanStatus, name="trainee_day_plan_status_enum", native_enum=False),
        nullable=False,
        default=TraineeDayPlanStatus.DRAFT,
        index=True,
    )
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_role = Column(String(32), nullable=False, default="trainee")

    reviewed_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_comments = Column(Text, nullable=True)
    approved_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    eod_status = Column(
        SAEnum(EodStatus, name="eod_status_enum", native_enum=False),
        nullable=True,
    )
    eod_submitted_at = Column(DateTime(timezone=True), nullable=True)
    eod_overall_remarks = Column(Text, nullable=True)
    eod_reviewed_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    eod_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    eod_review_comments = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<TraineeDayPlan id={self.id} trainee={self.trainee_id} date={self.plan_date} status={self.status}>"


class DayPlan(Base):
    """
    A trainer-authored schedule for one working day (exactly eight hours),
    published to some of the trainer's assigned trainees.
    """

    __tablename__ = "day_plans"
    __table_args__ = (
        Index("ix_day_plans_trainer_date", "trainer_id", "plan_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    trainer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    plan_date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    duration_hours = Column(Float, nullable=False)

    tasks = Column(JSON, nullable=False, default=list)
    audience_ids = Column(JSON, nullable=False, default=list)

    status = Column(
        SAEnum(DayPlanStatus, name="day_plan_status_enum", native_enum=False),
        nullable=False,
        default=DayPlanStatus.DRAFT,
        index=True,
    )
    published_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=False, default="")
    feedback = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<DayPlan id={self.id} trainer={self.trainer_id} date={self.plan_date} status={self.status}>"
