from __future__ import annotations

from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
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


class ObservationRating(str, enum.Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    AVERAGE = "AVERAGE"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"


# Used for the average rating in observation stats.
RATING_SCORES = {
    ObservationRating.EXCELLENT: 4,
    ObservationRating.GOOD: 3,
    ObservationRating.AVERAGE: 2,
    ObservationRating.NEEDS_IMPROVEMENT: 1,
}


class ObservationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    REVIEWED = "REVIEWED"


class Observation(Base):
    """
    A trainer's report on one assigned trainee for one day, reviewed by a
    master trainer once submitted.

    culture:  {communication, teamwork, discipline, attitude, notes}
    grooming: {dress_code, neatness, punctuality, notes}
    Each category value is an ObservationRating value.
    """

    __tablename__ = "observations"
    __table_args__ = (
        UniqueConstraint(
            "trainer_id",
            "trainee_id",
            "observation_date",
            name="uq_observations_trainer_trainee_date",
        ),
        Index("ix_observations_status_date", "status", "observation_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    trainer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    trainee_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    observation_date = Column(Date, nullable=False, index=True)

    culture = Column(JSON, nullable=False, default=dict)
    grooming = Column(JSON, nullable=False, default=dict)
    overall_rating = Column(
        SAEnum(ObservationRating, name="observation_rating_enum", native_enum=False),
        nullable=False,
    )
    strengths = Column(JSON, nullable=False, default=list)
    areas_for_improvement = Column(JSON, nullable=False, default=list)
    recommendations = Column(Text, nullable=False, default="")

    status = Column(
        SAEnum(ObservationStatus, name="observation_status_enum", native_enum=False),
        nullable=False,
        default=ObservationStatus.DRAFT,
        index=True,
    )
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    master_trainer_notes = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return (
            f"<Observation id={self.id} trainer={self.trainer_id} trainee={self.trainee_id} "
            f"date={self.observation_date} status={self.status}>"
        )
