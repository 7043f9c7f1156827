"""
Trainer observation reports.

A trainer records an observation for a trainee currently assigned to them
(checked against the trainer's `assigned_trainee_ids`), edits it while it
is a draft, and submits it. Submission notifies the trainee and every
active master trainer; a master trainer then reviews it, which notifies
the trainer. Status changes go through the workflow registry.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from traindb.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from traindb.apps.accounts import models as account_models
from traindb.apps.accounts import services as account_services
from traindb.apps.notifications import models as notification_models
from traindb.apps.notifications import service as notification_service
from traindb.apps.workflow import apply_transition

from . import models

logger = logging.getLogger(__name__)

AccountRole = account_models.AccountRole
ObservationStatus = models.ObservationStatus

_EDITABLE_FIELDS = frozenset(
    {"culture", "grooming", "overall_rating", "strengths", "areas_for_improvement", "recommendations"}
)
_REVIEWERS = (AccountRole.MASTER_TRAINER, AccountRole.ADMIN)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _fmt(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def _rating_value(value):
    return value.value if isinstance(value, models.ObservationRating) else value


def _ratings(section: Optional[dict]) -> dict:
    return {key: _rating_value(value) for key, value in (section or {}).items()}


def get_observation_or_404(db: Session, observation_id: str) -> models.Observation:
    observation = (
        db.query(models.Observation).filter(models.Observation.id == observation_id).first()
    )
    if not observation:
        raise NotFoundError("Observation not found", error={"observation_id": observation_id})
    return observation


def _assigned_trainee(
    db: Session, trainer: account_models.User, trainee_ref: str
) -> account_models.User:
    # Trainees may be referenced by id or by their external author_id.
    for trainee in account_services.find_users_by_ids(db, trainer.assigned_trainee_ids or []):
        if trainee_ref in (trainee.id, trainee.author_id):
            return trainee
    raise ForbiddenError("Trainee is not assigned to you", error={"trainee_id": trainee_ref})


def _require_author(observation: models.Observation, trainer: account_models.User) -> None:
    if observation.trainer_id != trainer.id:
        raise ForbiddenError("Access denied", error={"observation_id": observation.id})


def _active_master_trainers(db: Session) -> List[account_models.User]:
    return (
        db.query(account_models.User)
        .filter(
            account_models.User.role == AccountRole.MASTER_TRAINER,
            account_models.User.is_active.is_(True),
        )
        .all()
    )


def _notify(
    db: Session,
    recipient: account_models.User,
    observation: models.Observation,
    *,
    title: str,
    message: str,
    sender_id: str,
) -> None:
    notification_service.notify(
        db,
        recipient=recipient,
        type=notification_models.NotificationType.OBSERVATION,
        title=title,
        message=message,
        priority=notification_models.NotificationPriority.MEDIUM,
        sender_id=sender_id,
        related_entity_type="observation",
        related_entity_id=observation.id,
    )


def create_observation(
    db: Session,
    *,
    trainer: account_models.User,
    trainee_id: str,
    observation_date: date,
    culture: dict,
    grooming: dict,
    overall_rating: models.ObservationRating,
    strengths: Optional[Sequence[str]] = None,
    areas_for_improvement: Optional[Sequence[str]] = None,
    recommendations: Optional[str] = None,
) -> models.Observation:
    trainee = _assigned_trainee(db, trainer, trainee_id)
    conflict = {"trainee_id": trainee.id, "observation_date": observation_date.isoformat()}

    existing = (
        db.query(models.Observation)
        .filter(
            models.Observation.trainer_id == trainer.id,
            models.Observation.trainee_id == trainee.id,
            models.Observation.observation_date == observation_date,
        )
        .first()
    )
    if existing is not None:
        raise ConflictError(
            "Observation already exists for this date",
            error={**conflict, "observation_id": existing.id},
        )

    observation = models.Observation(
        trainer_id=trainer.id,
        trainee_id=trainee.id,
        observation_date=observation_date,
        culture=_ratings(culture),
        grooming=_ratings(grooming),
        overall_rating=overall_rating,
        strengths=list(strengths or []),
        areas_for_improvement=list(areas_for_improvement or []),
        recommendations=recommendations or "",
        status=ObservationStatus.DRAFT,
    )
    try:
        with db.begin_nested():
            db.add(observation)
            db.flush()
    except IntegrityError as exc:
        raise ConflictError("Observation already exists for this date", error=conflict) from exc

    logger.info(
        "Observation created",
        extra={"observation_id": observation.id, "trainer_id": trainer.id, "trainee_id": trainee.id},
    )
    return observation


def update_observation(
    db: Session,
    *,
    observation_id: str,
    trainer: account_models.User,
    patch: dict,
) -> models.Observation:
    observation = get_observation_or_404(db, observation_id)
    _require_author(observation, trainer)
    if observation.status != ObservationStatus.DRAFT:
        raise ValidationError(
            "Cannot update submitted observation",
            error={"status": observation.status.value},
        )
    unknown = set(patch) - _EDITABLE_FIELDS
    if unknown:
        raise ValidationError("Unknown observation fields", error={"fields": sorted(unknown)})

    for field, value in patch.items():
        if value is None:
            continue
        if field in ("culture", "grooming"):
            value = _ratings(value)
        elif field in ("strengths", "areas_for_improvement"):
            value = list(value)
        elif field == "overall_rating":
            value = models.ObservationRating(value)
        setattr(observation, field, value)
    db.add(observation)
    db.flush()
    return observation


def submit_observation(
    db: Session,
    *,
    observation_id: str,
    trainer: account_models.User,
) -> models.Observation:
    observation = get_observation_or_404(db, observation_id)
    _require_author(observation, trainer)

    apply_transition(
        db,
        actor_user_id=trainer.id,
        entity_type="observation",
        entity_id=observation.id,
        from_state=observation.status.value,
        to_state=ObservationStatus.SUBMITTED.value,
        before_obj=None,
        after_obj={
            "culture": dict(observation.culture or {}),
            "grooming": dict(observation.grooming or {}),
            "overall_rating": _rating_value(observation.overall_rating),
        },
    )
    observation.status = ObservationStatus.SUBMITTED
    observation.submitted_at = _utcnow()
    db.add(observation)
    db.flush()

    when = _fmt(observation.observation_date)
    trainee = account_services.get_user(db, observation.trainee_id)
    if trainee is not None:
        _notify(
            db,
            trainee,
            observation,
            title="New Observation Recorded",
            message=f"{trainer.name} has recorded an observation for you on {when}",
            sender_id=trainer.id,
        )
    for master in _active_master_trainers(db):
        _notify(
            db,
            master,
            observation,
            title="Observation Report Submitted",
            message=f"{trainer.name} has submitted an observation report for {when} for review",
            sender_id=trainer.id,
        )
    return observation


def review_observation(
    db: Session,
    *,
    observation_id: str,
    reviewer: account_models.User,
    master_trainer_notes: Optional[str] = None,
) -> models.Observation:
    if reviewer.role not in _REVIEWERS:
        raise ForbiddenError("Only master trainers may review observations")
    observation = get_observation_or_404(db, observation_id)

    now = _utcnow()
    apply_transition(
        db,
        actor_user_id=reviewer.id,
        entity_type="observation",
        entity_id=observation.id,
        from_state=observation.status.value,
        to_state=ObservationStatus.REVIEWED.value,
        before_obj=None,
        after_obj={"reviewed_by_id": reviewer.id, "reviewed_at": now.isoformat()},
    )
    observation.status = ObservationStatus.REVIEWED
    observation.reviewed_by_id = reviewer.id
    observation.reviewed_at = now
    observation.master_trainer_notes = master_trainer_notes or ""
    db.add(observation)
    db.flush()

    trainer = account_services.get_user(db, observation.trainer_id)
    if trainer is not None:
        _notify(
            db,
            trainer,
            observation,
            title="Observation Reviewed",
            message=(
                f"Your observation report for {_fmt(observation.observation_date)} "
                "has been reviewed"
            ),
            sender_id=reviewer.id,
        )
    return observation


def _scoped_query(db: Session, actor: account_models.User):
    qs = db.query(models.Observation)
    if actor.role == AccountRole.TRAINER:
        qs = qs.filter(models.Observation.trainer_id == actor.id)
    elif actor.role == AccountRole.TRAINEE:
        # Drafts stay with the trainer until submitted.
        qs = qs.filter(
            models.Observation.trainee_id == actor.id,
            models.Observation.status != ObservationStatus.DRAFT,
        )
    return qs


def list_observations(
    db: Session,
    *,
    actor: account_models.User,
    trainee_id: Optional[str] = None,
    trainer_id: Optional[str] = None,
    status: Optional[ObservationStatus] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[Sequence[models.Observation], int]:
    qs = _scoped_query(db, actor)
    if trainee_id:
        qs = qs.filter(models.Observation.trainee_id == trainee_id)
    if trainer_id:
        qs = qs.filter(models.Observation.trainer_id == trainer_id)
    if status is not None:
        qs = qs.filter(models.Observation.status == status)
    if start and end:
        qs = qs.filter(
            models.Observation.observation_date >= start,
            models.Observation.observation_date <= end,
        )

    total = qs.count()
    rows = (
        qs.order_by(models.Observation.observation_date.desc(), models.Observation.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def get_observation(
    db: Session, *, observation_id: str, actor: account_models.User
) -> models.Observation:
    observation = get_observation_or_404(db, observation_id)
    if actor.role == AccountRole.TRAINER:
        _require_author(observation, actor)
    elif actor.role == AccountRole.TRAINEE:
        if observation.trainee_id != actor.id:
            raise ForbiddenError("Access denied", error={"observation_id": observation.id})
        if observation.status == ObservationStatus.DRAFT:
            raise NotFoundError("Observation not found", error={"observation_id": observation.id})
    return observation


def observation_stats(
    db: Session,
    *,
    actor: account_models.User,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> dict:
    """Counts by status and the mean overall rating (EXCELLENT=4 .. NEEDS_IMPROVEMENT=1)."""
    qs = _scoped_query(db, actor)
    if start and end:
        qs = qs.filter(
            models.Observation.observation_date >= start,
            models.Observation.observation_date <= end,
        )
    rows = qs.all()
    scores = [models.RATING_SCORES[models.ObservationRating(row.overall_rating)] for row in rows]
    return {
        "total_observations": len(rows),
        "submitted_observations": sum(1 for r in rows if r.status == ObservationStatus.SUBMITTED),
        "reviewed_observations": sum(1 for r in rows if r.status == ObservationStatus.REVIEWED),
        "average_overall_rating": round(sum(scores) / len(scores), 2) if scores else 0.0,
    }
