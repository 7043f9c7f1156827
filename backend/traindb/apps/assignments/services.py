"""
Assignment reconciler.

The `assignments` table is the ledger of trainer/trainee bindings. Two
columns on `users` mirror it so dashboards can read a trainer's trainees
(or a trainee's trainer) without touching the ledger:

- users.assigned_trainee_ids on the trainer
- users.assigned_trainer_id on each trainee

Every write to those columns goes through this module. Each operation runs
inside the caller's transaction: guards first, then the ledger write, then
propagation to users, then best-effort notifications and audit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from traindb.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from traindb.apps.accounts import models as account_models
from traindb.apps.accounts import services as account_services
from traindb.apps.audit import services as audit_services
from traindb.apps.notifications import models as notification_models
from traindb.apps.notifications import service as notification_service
from traindb.apps.workflow import apply_transition

from . import models

logger = logging.getLogger(__name__)

AccountRole = account_models.AccountRole
AssignmentStatus = models.AssignmentStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BindResult:
    assignment: models.Assignment
    is_update: bool
    total_trainees: int
    newly_assigned: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Ledger access
# ---------------------------------------------------------------------------


def find_active_assignment(
    db: Session,
    trainer_id: str,
    *,
    for_update: bool = False,
) -> Optional[models.Assignment]:
    qs = db.query(models.Assignment).filter(
        models.Assignment.trainer_id == trainer_id,
        models.Assignment.status == AssignmentStatus.ACTIVE,
    )
    if for_update:
        qs = qs.with_for_update()
    return qs.first()


def get_assignment_or_404(db: Session, assignment_id: str) -> models.Assignment:
    assignment = db.query(models.Assignment).filter(models.Assignment.id == assignment_id).first()
    if not assignment:
        raise NotFoundError("Assignment not found", error={"assignment_id": assignment_id})
    return assignment


def list_assignments(
    db: Session,
    *,
    current_user: account_models.User,
    status: Optional[AssignmentStatus] = None,
    trainer_id: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[Sequence[models.Assignment], int]:
    qs = db.query(models.Assignment)
    if trainer_id:
        qs = qs.filter(models.Assignment.trainer_id == trainer_id)
    elif current_user.role == AccountRole.MASTER_TRAINER:
        qs = qs.filter(models.Assignment.master_trainer_id == current_user.id)
    if status is not None:
        qs = qs.filter(models.Assignment.status == status)
    total = qs.count()
    rows = (
        qs.order_by(models.Assignment.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def _dedupe(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(str(i).strip() for i in ids if i and str(i).strip()))


def _resolve_trainer(db: Session, trainer_id: str) -> account_models.User:
    trainer = account_services.get_user(db, trainer_id)
    if not trainer or trainer.role != AccountRole.TRAINER:
        raise ValidationError("Invalid trainer", error={"trainer_id": trainer_id})
    return trainer


def _resolve_trainees(db: Session, trainee_ids: Sequence[str]) -> List[account_models.User]:
    trainees = account_services.find_users_by_ids(db, trainee_ids)
    found = {t.id for t in trainees}
    missing = [tid for tid in trainee_ids if tid not in found]
    wrong_role = [t.id for t in trainees if t.role != AccountRole.TRAINEE]
    inactive = [t.id for t in trainees if t.role == AccountRole.TRAINEE and not t.is_active]
    if missing or wrong_role or inactive:
        raise ValidationError(
            "Some trainees are invalid",
            error={"missing": missing, "not_trainee": wrong_role, "inactive": inactive},
        )
    return trainees


def _ensure_not_bound_elsewhere(db: Session, trainer_id: str, trainee_ids: Sequence[str]) -> None:
    wanted = set(trainee_ids)
    others = (
        db.query(models.Assignment)
        .filter(
            models.Assignment.status == AssignmentStatus.ACTIVE,
            models.Assignment.trainer_id != trainer_id,
        )
        .all()
    )
    clashes: Dict[str, str] = {}
    for other in others:
        for trainee_id in other.trainee_ids or []:
            if trainee_id in wanted:
                clashes[trainee_id] = other.trainer_id
    if clashes:
        raise ConflictError(
            "Some trainees are already assigned to another trainer",
            error={"trainees": clashes},
        )


def _require_master(assignment: models.Assignment, requested_by: account_models.User) -> None:
    if assignment.master_trainer_id != requested_by.id:
        raise ForbiddenError(
            "Only the master trainer who created this assignment may change it",
            error={"assignment_id": assignment.id},
        )


# ---------------------------------------------------------------------------
# Propagation
# ---------------------------------------------------------------------------


def _attach(trainer: account_models.User, trainees: Iterable[account_models.User]) -> None:
    for trainee in trainees:
        trainee.assigned_trainer_id = trainer.id
        trainee.status = "active"


def _set_trainer_list(db: Session, trainer: account_models.User, trainee_ids: Sequence[str]) -> List[str]:
    resolved = [u.id for u in account_services.find_users_by_ids(db, trainee_ids)]
    # Reassign a fresh list so the JSON column is flagged dirty.
    trainer.assigned_trainee_ids = list(resolved)
    return resolved


# ---------------------------------------------------------------------------
# Bind
# ---------------------------------------------------------------------------


def bind_trainees(
    db: Session,
    *,
    trainer_id: str,
    trainee_ids: Sequence[str],
    requested_by: account_models.User,
    effective_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    instructions: Optional[str] = None,
) -> BindResult:
    """
    Bind trainees to a trainer, creating or extending the trainer's ACTIVE
    assignment. Re-binding an already-bound trainee is a no-op.
    """
    ids = _dedupe(trainee_ids or [])
    if not ids:
        raise ValidationError("At least one trainee is required", error={"trainee_ids": []})

    trainer = _resolve_trainer(db, trainer_id)
    trainees = _resolve_trainees(db, ids)
    _ensure_not_bound_elsewhere(db, trainer.id, ids)

    now = _utcnow()
    existing = find_active_assignment(db, trainer.id, for_update=True)

    if existing is None:
        assignment = models.Assignment(
            master_trainer_id=requested_by.id,
            trainer_id=trainer.id,
            trainee_ids=list(ids),
            assignment_date=now,
            effective_date=effective_date or now,
            status=AssignmentStatus.ACTIVE,
            notes=notes or "",
            instructions=instructions or "",
            total_trainees=len(ids),
            active_trainees=len(ids),
            created_by_id=requested_by.id,
        )
        try:
            with db.begin_nested():
                db.add(assignment)
                db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "Trainer already has an active assignment",
                error={"trainer_id": trainer.id},
            ) from exc
        all_ids = list(ids)
        newly_added = list(trainees)
        is_update = False
    else:
        assignment = existing
        current = list(assignment.trainee_ids or [])
        all_ids = current + [tid for tid in ids if tid not in current]
        newly_added = [t for t in trainees if t.id not in current]
        assignment.trainee_ids = list(all_ids)
        assignment.total_trainees = len(all_ids)
        assignment.active_trainees = len(all_ids)
        assignment.modified_by_id = requested_by.id
        assignment.modified_at = now
        if notes:
            assignment.notes = notes
        if instructions:
            assignment.instructions = instructions
        db.add(assignment)
        db.flush()
        is_update = True

    _set_trainer_list(db, trainer, all_ids)
    _attach(trainer, newly_added)
    db.flush()

    newly_assigned = [t.id for t in newly_added]
    logger.info(
        "Trainees bound to trainer",
        extra={
            "assignment_id": assignment.id,
            "trainer_id": trainer.id,
            "is_update": is_update,
            "total_trainees": len(all_ids),
            "newly_assigned": len(newly_assigned),
        },
    )

    _notify_bind(db, assignment, trainer, newly_added, requested_by, is_update, len(all_ids))
    audit_services.log_event(
        db,
        actor_user_id=requested_by.id,
        entity_type="assignment",
        entity_id=assignment.id,
        action="assignment_update" if is_update else "assignment_create",
        after={
            "trainer_id": trainer.id,
            "trainee_ids": list(all_ids),
            "newly_assigned": newly_assigned,
        },
        metadata={"module": "assignments"},
    )

    return BindResult(
        assignment=assignment,
        is_update=is_update,
        total_trainees=len(all_ids),
        newly_assigned=newly_assigned,
    )


def _notify_bind(
    db: Session,
    assignment: models.Assignment,
    trainer: account_models.User,
    newly_added: Sequence[account_models.User],
    requested_by: account_models.User,
    is_update: bool,
    total: int,
) -> None:
    if is_update:
        title = "Trainee Assignment Updated"
        message = (
            f"Your assignment has been updated. You now have {total} total trainees "
            f"({len(newly_added)} newly assigned)"
        )
    else:
        title = "New Trainee Assignment"
        message = f"You have been assigned {total} trainees"

    notification_service.notify(
        db,
        recipient=trainer,
        type=notification_models.NotificationType.ASSIGNMENT,
        title=title,
        message=message,
        priority=notification_models.NotificationPriority.HIGH,
        sender_id=requested_by.id,
        related_entity_type="assignment",
        related_entity_id=assignment.id,
        requires_action=True,
    )
    for trainee in newly_added:
        notification_service.notify(
            db,
            recipient=trainee,
            type=notification_models.NotificationType.ASSIGNMENT,
            title="Trainer Assignment",
            message=f"You have been assigned to trainer: {trainer.name}",
            priority=notification_models.NotificationPriority.MEDIUM,
            sender_id=requested_by.id,
            related_entity_type="assignment",
            related_entity_id=assignment.id,
        )


# ---------------------------------------------------------------------------
# Complete / update / acknowledge
# ---------------------------------------------------------------------------


def complete_assignment(
    db: Session,
    *,
    assignment_id: str,
    requested_by: account_models.User,
    end_date: Optional[datetime] = None,
) -> models.Assignment:
    """Close an ACTIVE assignment and detach every trainee from the trainer."""
    assignment = get_assignment_or_404(db, assignment_id)
    _require_master(assignment, requested_by)

    now = _utcnow()
    end = end_date or now
    apply_transition(
        db,
        actor_user_id=requested_by.id,
        entity_type="assignment",
        entity_id=assignment.id,
        from_state=assignment.status.value,
        to_state=AssignmentStatus.COMPLETED.value,
        before_obj={"trainee_ids": list(assignment.trainee_ids or [])},
        after_obj={"end_date": end.isoformat()},
    )

    assignment.status = AssignmentStatus.COMPLETED
    assignment.end_date = end
    assignment.modified_by_id = requested_by.id
    assignment.modified_at = now
    db.add(assignment)

    for trainee in account_services.find_users_by_ids(db, assignment.trainee_ids or []):
        trainee.assigned_trainer_id = None
    trainer = account_services.get_user(db, assignment.trainer_id)
    if trainer is not None:
        trainer.assigned_trainee_ids = []
    db.flush()

    logger.info(
        "Assignment completed",
        extra={"assignment_id": assignment.id, "trainer_id": assignment.trainer_id},
    )

    if trainer is not None:
        notification_service.notify(
            db,
            recipient=trainer,
            type=notification_models.NotificationType.ASSIGNMENT,
            title="Assignment Completed",
            message=(
                f"Your assignment of {len(assignment.trainee_ids or [])} trainees "
                "has been completed"
            ),
            priority=notification_models.NotificationPriority.MEDIUM,
            sender_id=requested_by.id,
            related_entity_type="assignment",
            related_entity_id=assignment.id,
        )
    return assignment


def update_assignment(
    db: Session,
    *,
    assignment_id: str,
    requested_by: account_models.User,
    trainee_ids: Optional[Sequence[str]] = None,
    notes: Optional[str] = None,
    instructions: Optional[str] = None,
    effective_date: Optional[datetime] = None,
) -> models.Assignment:
    """
    Edit an ACTIVE assignment. A new trainee set replaces the old one:
    removed trainees are detached, added trainees are validated and attached.
    """
    assignment = get_assignment_or_404(db, assignment_id)
    _require_master(assignment, requested_by)
    if assignment.status != AssignmentStatus.ACTIVE:
        raise ValidationError(
            "Only active assignments can be updated",
            error={"status": assignment.status.value},
        )

    trainer = account_services.get_user(db, assignment.trainer_id)
    added: List[account_models.User] = []
    before = list(assignment.trainee_ids or [])

    if trainee_ids is not None:
        ids = _dedupe(trainee_ids)
        if not ids:
            raise ValidationError(
                "An assignment needs at least one trainee; complete it instead",
                error={"trainee_ids": []},
            )
        added_ids = [tid for tid in ids if tid not in before]
        removed_ids = [tid for tid in before if tid not in ids]
        if added_ids:
            added = _resolve_trainees(db, added_ids)
            _ensure_not_bound_elsewhere(db, assignment.trainer_id, added_ids)

        for trainee in account_services.find_users_by_ids(db, removed_ids):
            if trainee.assigned_trainer_id == assignment.trainer_id:
                trainee.assigned_trainer_id = None

        assignment.trainee_ids = list(ids)
        assignment.total_trainees = len(ids)
        assignment.active_trainees = len(ids)
        if trainer is not None:
            _set_trainer_list(db, trainer, ids)
            _attach(trainer, added)

    if notes is not None:
        assignment.notes = notes
    if instructions is not None:
        assignment.instructions = instructions
    if effective_date is not None:
        assignment.effective_date = effective_date
    assignment.modified_by_id = requested_by.id
    assignment.modified_at = _utcnow()
    db.add(assignment)
    db.flush()

    if trainer is not None:
        for trainee in added:
            notification_service.notify(
                db,
                recipient=trainee,
                type=notification_models.NotificationType.ASSIGNMENT,
                title="Trainer Assignment",
                message=f"You have been assigned to trainer: {trainer.name}",
                priority=notification_models.NotificationPriority.MEDIUM,
                sender_id=requested_by.id,
                related_entity_type="assignment",
                related_entity_id=assignment.id,
            )
    audit_services.log_event(
        db,
        actor_user_id=requested_by.id,
        entity_type="assignment",
        entity_id=assignment.id,
        action="assignment_edit",
        before={"trainee_ids": before},
        after={"trainee_ids": list(assignment.trainee_ids or [])},
        metadata={"module": "assignments"},
    )
    return assignment


def acknowledge_assignment(
    db: Session,
    *,
    assignment_id: str,
    trainer: account_models.User,
) -> models.Assignment:
    assignment = get_assignment_or_404(db, assignment_id)
    if assignment.trainer_id != trainer.id:
        raise ForbiddenError(
            "Only the assigned trainer may acknowledge this assignment",
            error={"assignment_id": assignment.id},
        )
    if not assignment.is_acknowledged:
        assignment.is_acknowledged = True
        assignment.acknowledged_at = _utcnow()
        db.add(assignment)
        db.flush()
    return assignment


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------


def sync_assignments_to_users(db: Session) -> dict:
    """
    Re-apply every ACTIVE assignment to the users table and clear links the
    ledger does not back. Never writes ledger rows. Safe to run repeatedly.

    A trainee listed by more than one ACTIVE row is left unlinked on both
    sides and reported under `conflicting_trainees`; the ledger has to be
    corrected by hand before the link can be restored.
    """
    summary = {
        "assignments": 0,
        "trainers_updated": 0,
        "trainees_updated": 0,
        "stale_links_cleared": 0,
        "conflicting_trainees": [],
    }
    backed: Dict[str, str] = {}
    trainers_with_ledger = set()

    active = (
        db.query(models.Assignment)
        .filter(models.Assignment.status == AssignmentStatus.ACTIVE)
        .order_by(models.Assignment.created_at.asc())
        .all()
    )
    claims: Dict[str, List[str]] = {}
    for assignment in active:
        for trainee_id in _dedupe(assignment.trainee_ids or []):
            claims.setdefault(trainee_id, []).append(assignment.id)
    conflicting = {trainee_id for trainee_id, rows in claims.items() if len(rows) > 1}
    for trainee_id in sorted(conflicting):
        logger.warning(
            "Trainee is listed by more than one active assignment",
            extra={"trainee_id": trainee_id, "assignment_ids": claims[trainee_id]},
        )
    summary["conflicting_trainees"] = sorted(conflicting)

    for assignment in active:
        summary["assignments"] += 1
        trainer = account_services.get_user(db, assignment.trainer_id)
        if trainer is None:
            logger.warning(
                "Active assignment references a missing trainer",
                extra={"assignment_id": assignment.id, "trainer_id": assignment.trainer_id},
            )
            continue
        trainers_with_ledger.add(trainer.id)

        trainees = [
            t
            for t in account_services.find_users_by_ids(db, assignment.trainee_ids or [])
            if t.id not in conflicting
        ]
        resolved = [t.id for t in trainees]
        if list(trainer.assigned_trainee_ids or []) != resolved:
            trainer.assigned_trainee_ids = list(resolved)
            summary["trainers_updated"] += 1
        for trainee in trainees:
            backed[trainee.id] = trainer.id
            if trainee.assigned_trainer_id != trainer.id:
                trainee.assigned_trainer_id = trainer.id
                summary["trainees_updated"] += 1

    trainers = (
        db.query(account_models.User)
        .filter(account_models.User.role == AccountRole.TRAINER)
        .all()
    )
    for trainer in trainers:
        if trainer.id not in trainers_with_ledger and trainer.assigned_trainee_ids:
            trainer.assigned_trainee_ids = []
            summary["stale_links_cleared"] += 1

    linked = (
        db.query(account_models.User)
        .filter(account_models.User.assigned_trainer_id.isnot(None))
        .all()
    )
    for trainee in linked:
        if backed.get(trainee.id) != trainee.assigned_trainer_id:
            trainee.assigned_trainer_id = None
            summary["stale_links_cleared"] += 1

    db.flush()
    logger.info("Assignment sync finished", extra=summary)
    return summary


# ---------------------------------------------------------------------------
# Read views (denormalised fields only)
# ---------------------------------------------------------------------------


def get_trainer_view(db: Session, trainer: account_models.User) -> dict:
    trainees = account_services.find_users_by_ids(db, trainer.assigned_trainee_ids or [])
    return {
        "trainer": trainer,
        "trainees": trainees,
        "total_trainees": len(trainees),
        "active_trainees": len([t for t in trainees if t.is_active]),
    }


def get_trainee_view(db: Session, trainee: account_models.User) -> dict:
    trainer = account_services.get_user(db, trainee.assigned_trainer_id)
    return {"trainee": trainee, "trainer": trainer, "has_trainer": trainer is not None}


def list_available_trainers(db: Session) -> List[account_models.User]:
    trainers = (
        db.query(account_models.User)
        .filter(
            account_models.User.role == AccountRole.TRAINER,
            account_models.User.is_active.is_(True),
        )
        .order_by(account_models.User.name.asc())
        .all()
    )
    return [t for t in trainers if not t.assigned_trainee_ids]


def list_unassigned_trainees(db: Session) -> List[account_models.User]:
    return (
        db.query(account_models.User)
        .filter(
            account_models.User.role == AccountRole.TRAINEE,
            account_models.User.is_active.is_(True),
            account_models.User.assigned_trainer_id.is_(None),
        )
        .order_by(account_models.User.name.asc())
        .all()
    )
