from __future__ import annotations

from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    text,
)

from traindb.database import Base
from traindb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Assignment(Base):
    """
    Ledger row binding one trainer to a set of trainees.

    This table is the source of truth for trainer/trainee links; the
    `assigned_*` columns on users are copies maintained by
    `traindb.apps.assignments.services`.

    At most one ACTIVE row per trainer (partial unique index below).
    """

    __tablename__ = "assignments"
    __table_args__ = (
        Index("ix_assignments_master_trainer_status", "master_trainer_id", "trainer_id", "status"),
        Index(
            "uq_assignments_trainer_active",
            "trainer_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    master_trainer_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    trainer_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    trainee_ids = Column(JSON, nullable=False, default=list)

    assignment_date = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    effective_date = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    end_date = Column(DateTime(timezone=True), nullable=True)

    status = Column(
        SAEnum(AssignmentStatus, name="assignment_status_enum", native_enum=False),
        nullable=False,
        default=AssignmentStatus.ACTIVE,
        index=True,
    )

    notes = Column(Text, nullable=False, default="")
    instructions = Column(Text, nullable=False, default="")

    is_acknowledged = Column(Boolean, nullable=False, default=False)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)

    total_trainees = Column(Integer, nullable=False, default=0)
    active_trainees = Column(Integer, nullable=False, default=0)

    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    modified_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    modified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<Assignment id={self.id} trainer={self.trainer_id} status={self.status}>"
