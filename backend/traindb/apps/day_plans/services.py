"""
Day-plan and end-of-day (EOD) review services.

Every mutation follows the same order: guard, mutate, then notify the
counterpart (best-effort). Status changes go through the workflow
registry so illegal transitions raise before anything is written.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from traindb.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from traindb.utils.identifiers import generate_task_id
from traindb.apps.accounts import models as account_models
from traindb.apps.accounts import services as account_services
from traindb.apps.notifications import models as notification_models
from traindb.apps.notifications import service as notification_service
from traindb.apps.workflow import apply_transition

from . import models

logger = logging.getLogger(__name__)

AccountRole = account_models.AccountRole
PlanStatus = models.TraineeDayPlanStatus
DayPlanStatus = models.DayPlanStatus

_STAFF = (AccountRole.MASTER_TRAINER, AccountRole.BOA, AccountRole.ADMIN)
_EDITABLE = (PlanStatus.DRAFT, PlanStatus.IN_PROGRESS)
WORKDAY_HOURS = 8.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _fmt(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def _paginate(items: List[Any], page: int, limit: int) -> List[Any]:
    start = (page - 1) * limit
    return items[start:start + limit]


# ---------------------------------------------------------------------------
# Trainee day plans
# ---------------------------------------------------------------------------


def _normalise_trainee_tasks(tasks: Optional[Sequence[dict]]) -> List[dict]:
    normalised = []
    for task in tasks or []:
        item = dict(task)
        item["id"] = item.get("id") or generate_task_id()
        item.setdefault("title", "")
        item.setdefault("description", "")
        item.setdefault("time_allocation", None)
        item["status"] = item.get("status") or models.TaskStatus.PENDING.value
        item.setdefault("remarks", "")
        normalised.append(item)
    return normalised


def get_trainee_day_plan_or_404(db: Session, plan_id: str) -> models.TraineeDayPlan:
    plan = db.query(models.TraineeDayPlan).filter(models.TraineeDayPlan.id == plan_id).first()
    if not plan:
        raise NotFoundError("Day plan not found", error={"plan_id": plan_id})
    return plan


def find_trainee_day_plan(db: Session, trainee_id: str, plan_date: date) -> Optional[models.TraineeDayPlan]:
    return (
        db.query(models.TraineeDayPlan)
        .filter(
            models.TraineeDayPlan.trainee_id == trainee_id,
            models.TraineeDayPlan.plan_date == plan_date,
        )
        .first()
    )


def _require_owner(plan: models.TraineeDayPlan, actor: account_models.User) -> None:
    if plan.trainee_id != actor.id:
        raise ForbiddenError("Access denied", error={"plan_id": plan.id})


def _require_assigned_trainer(
    db: Session, plan: models.TraineeDayPlan, trainer: account_models.User
) -> account_models.User:
    trainee = account_services.get_user(db, plan.trainee_id)
    if trainee is None or trainee.assigned_trainer_id != trainer.id:
        raise ForbiddenError(
            "Only the trainee's assigned trainer may review this plan",
            error={"plan_id": plan.id},
        )
    return trainee


def _notify_trainer_of(
    db: Session,
    trainee: account_models.User,
    plan: models.TraineeDayPlan,
    *,
    title: str,
    message: str,
    sender_id: str,
) -> None:
    trainer = account_services.get_user(db, trainee.assigned_trainer_id)
    if trainer is None:
        logger.info("No assigned trainer to notify", extra={"trainee_id": trainee.id, "plan_id": plan.id})
        return
    notification_service.notify(
        db,
        recipient=trainer,
        type=notification_models.NotificationType.TRAINEE_DAY_PLAN,
        title=title,
        message=message,
        priority=notification_models.NotificationPriority.MEDIUM,
        sender_id=sender_id,
        related_entity_type="trainee_day_plan",
        related_entity_id=plan.id,
    )


def _notify_trainee(
    db: Session,
    trainee: account_models.User,
    plan: models.TraineeDayPlan,
    *,
    title: str,
    message: str,
    sender_id: str,
) -> None:
    notification_service.notify(
        db,
        recipient=trainee,
        type=notification_models.NotificationType.TRAINEE_DAY_PLAN,
        title=title,
        message=message,
        priority=notification_models.NotificationPriority.MEDIUM,
        sender_id=sender_id,
        related_entity_type="trainee_day_plan",
        related_entity_id=plan.id,
    )


def create_trainee_day_plan(
    db: Session,
    *,
    actor: account_models.User,
    plan_date: date,
    tasks: Optional[Sequence[dict]] = None,
    checkboxes: Optional[dict] = None,
    submit: bool = True,
    trainee_id: Optional[str] = None,
) -> models.TraineeDayPlan:
    """
    Create a trainee's plan for a date. A trainer may create one on behalf
    of a trainee currently assigned to them.
    """
    if trainee_id and trainee_id != actor.id:
        if actor.role != AccountRole.TRAINER:
            raise ForbiddenError("Only trainers can create day plans for other trainees")
        trainee = account_services.get_user(db, trainee_id)
        if trainee is None or trainee.role != AccountRole.TRAINEE:
            raise ValidationError("Invalid trainee", error={"trainee_id": trainee_id})
        if trainee.assigned_trainer_id != actor.id:
            raise ForbiddenError(
                "Trainee is not assigned to you",
                error={"trainee_id": trainee_id},
            )
        created_by_role = "trainer"
    else:
        if actor.role != AccountRole.TRAINEE:
            raise ValidationError("trainee_id is required", error={"trainee_id": None})
        trainee = actor
        created_by_role = "trainee"

    if find_trainee_day_plan(db, trainee.id, plan_date) is not None:
        raise ConflictError(
            "Day plan already exists for this date. Please update the existing plan instead.",
            error={"trainee_id": trainee.id, "plan_date": plan_date.isoformat()},
        )

    now = _utcnow()
    plan = models.TraineeDayPlan(
        trainee_id=trainee.id,
        plan_date=plan_date,
        tasks=_normalise_trainee_tasks(tasks),
        checkboxes=dict(checkboxes or {}),
        status=PlanStatus.IN_PROGRESS if submit else PlanStatus.DRAFT,
        submitted_at=now if submit else None,
        created_by_id=actor.id,
        created_by_role=created_by_role,
    )
    try:
        with db.begin_nested():
            db.add(plan)
            db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            "Day plan already exists for this date. Please update the existing plan instead.",
            error={"trainee_id": trainee.id, "plan_date": plan_date.isoformat()},
        ) from exc

    logger.info(
        "Trainee day plan created",
        extra={"plan_id": plan.id, "trainee_id": trainee.id, "status": plan.status.value},
    )

    if submit:
        if created_by_role == "trainer":
            title = "Day Plan Assigned"
            message = f"A day plan has been assigned to you for {trainee.name} on {_fmt(plan_date)}"
        else:
            title = "New Day Plan Submission"
            message = f"{trainee.name} has submitted a day plan for {_fmt(plan_date)}"
        _notify_trainer_of(db, trainee, plan, title=title, message=message, sender_id=actor.id)
    return plan


def update_trainee_day_plan(
    db: Session,
    *,
    plan_id: str,
    actor: account_models.User,
    tasks: Optional[Sequence[dict]] = None,
    checkboxes: Optional[dict] = None,
) -> models.TraineeDayPlan:
    plan = get_trainee_day_plan_or_404(db, plan_id)
    _require_owner(plan, actor)
    if plan.status not in _EDITABLE:
        raise ValidationError(
            "Cannot update day plan. Only draft or in_progress day plans can be updated.",
            error={"status": plan.status.value},
        )
    if tasks is not None:
        plan.tasks = _normalise_trainee_tasks(tasks)
    if checkboxes is not None:
        plan.checkboxes = dict(checkboxes)
    db.add(plan)
    db.flush()
    return plan


def submit_trainee_day_plan(
    db: Session,
    *,
    plan_id: str,
    actor: account_models.User,
) -> models.TraineeDayPlan:
    plan = get_trainee_day_plan_or_404(db, plan_id)
    _require_owner(plan, actor)
    apply_transition(
        db,
        actor_user_id=actor.id,
        entity_type="trainee_day_plan",
        entity_id=plan.id,
        from_state=plan.status.value,
        to_state=PlanStatus.IN_PROGRESS.value,
        before_obj=None,
        after_obj={"tasks": list(plan.tasks or [])},
    )
    plan.status = PlanStatus.IN_PROGRESS
    plan.submitted_at = _utcnow()
    db.add(plan)
    db.flush()

    _notify_trainer_of(
        db,
        actor,
        plan,
        title="Day Plan Submitted",
        message=f"{actor.name} has submitted a day plan for {_fmt(plan.plan_date)}",
        sender_id=actor.id,
    )
    return plan


def review_trainee_day_plan(
    db: Session,
    *,
    plan_id: str,
    reviewer: account_models.User,
    decision: models.ReviewDecision,
    comments: Optional[str] = None,
) -> models.TraineeDayPlan:
    plan = get_trainee_day_plan_or_404(db, plan_id)
    trainee = _require_assigned_trainer(db, plan, reviewer)
    if plan.status != PlanStatus.IN_PROGRESS:
        raise ValidationError(
            "Only day plans with 'in_progress' status can be reviewed",
            error={"status": plan.status.value},
        )

    now = _utcnow()
    target = PlanStatus.COMPLETED if decision == models.ReviewDecision.APPROVED else PlanStatus.REJECTED
    apply_transition(
        db,
        actor_user_id=reviewer.id,
        entity_type="trainee_day_plan",
        entity_id=plan.id,
        from_state=plan.status.value,
        to_state=target.value,
        before_obj=None,
        after_obj={"reviewed_by_id": reviewer.id, "reviewed_at": now.isoformat()},
    )
    plan.status = target
    plan.reviewed_by_id = reviewer.id
    plan.reviewed_at = now
    plan.review_comments = comments or ""
    if decision == models.ReviewDecision.APPROVED:
        plan.approved_by_id = reviewer.id
        plan.approved_at = now
    db.add(plan)
    db.flush()

    word = decision.value.lower()
    _notify_trainee(
        db,
        trainee,
        plan,
        title=f"Day Plan {word.capitalize()}",
        message=f"Your day plan for {_fmt(plan.plan_date)} has been {word}",
        sender_id=reviewer.id,
    )
    return plan


def delete_trainee_day_plan(db: Session, *, plan_id: str, actor: account_models.User) -> None:
    plan = get_trainee_day_plan_or_404(db, plan_id)
    _require_owner(plan, actor)
    if plan.status != PlanStatus.DRAFT:
        raise ValidationError("Cannot delete submitted day plan", error={"status": plan.status.value})
    db.delete(plan)
    db.flush()


def submit_eod_update(
    db: Session,
    *,
    trainee: account_models.User,
    plan_date: date,
    tasks: Sequence[dict],
    overall_remarks: Optional[str] = None,
) -> models.TraineeDayPlan:
    """
    Record the trainee's end-of-day report against the plan for `plan_date`.

    Each entry in `tasks` is {"task_index", "status", "remarks"?}.
    """
    plan = find_trainee_day_plan(db, trainee.id, plan_date)
    if plan is None:
        raise NotFoundError(
            "No day plan found for today. Please submit a day plan first.",
            error={"plan_date": plan_date.isoformat()},
        )

    current = [dict(task) for task in plan.tasks or []]
    bad = [u.get("task_index") for u in tasks if not _valid_index(u.get("task_index"), len(current))]
    if bad:
        raise ValidationError("Invalid task index", error={"task_index": bad})

    apply_transition(
        db,
        actor_user_id=trainee.id,
        entity_type="trainee_day_plan",
        entity_id=plan.id,
        from_state=plan.status.value,
        to_state=PlanStatus.PENDING.value,
        before_obj=None,
        after_obj={"eod_status": models.EodStatus.SUBMITTED.value},
    )

    now = _utcnow()
    for update in tasks:
        task = current[update["task_index"]]
        status = update.get("status")
        task["status"] = status.value if isinstance(status, models.TaskStatus) else status
        task["remarks"] = update.get("remarks") or ""
        task["updated_at"] = now.isoformat()
    plan.tasks = current
    plan.eod_status = models.EodStatus.SUBMITTED
    plan.eod_submitted_at = now
    plan.eod_overall_remarks = overall_remarks or ""
    plan.status = PlanStatus.PENDING
    db.add(plan)
    db.flush()

    _notify_trainer_of(
        db,
        trainee,
        plan,
        title="EOD Update Received",
        message=f"{trainee.name} has submitted their end-of-day update for {_fmt(plan_date)}",
        sender_id=trainee.id,
    )
    return plan


def _valid_index(index: Any, size: int) -> bool:
    return isinstance(index, int) and not isinstance(index, bool) and 0 <= index < size


def review_eod_update(
    db: Session,
    *,
    plan_id: str,
    reviewer: account_models.User,
    decision: models.ReviewDecision,
    comments: Optional[str] = None,
) -> models.TraineeDayPlan:
    plan = get_trainee_day_plan_or_404(db, plan_id)
    trainee = _require_assigned_trainer(db, plan, reviewer)
    if plan.status != PlanStatus.PENDING:
        raise ValidationError(
            "Only day plans with pending EOD updates can be reviewed",
            error={"status": plan.status.value},
        )

    now = _utcnow()
    approved = decision == models.ReviewDecision.APPROVED
    target = PlanStatus.COMPLETED if approved else PlanStatus.REJECTED
    apply_transition(
        db,
        actor_user_id=reviewer.id,
        entity_type="trainee_day_plan",
        entity_id=plan.id,
        from_state=plan.status.value,
        to_state=target.value,
        before_obj={"eod_status": plan.eod_status.value if plan.eod_status else None},
        after_obj={"reviewed_by_id": reviewer.id, "reviewed_at": now.isoformat()},
    )
    plan.eod_status = models.EodStatus.APPROVED if approved else models.EodStatus.REJECTED
    plan.eod_reviewed_by_id = reviewer.id
    plan.eod_reviewed_at = now
    plan.eod_review_comments = comments or ""
    plan.status = target
    db.add(plan)
    db.flush()

    word = decision.value.lower()
    _notify_trainee(
        db,
        trainee,
        plan,
        title=f"EOD Update {word.capitalize()}",
        message=f"Your end-of-day update for {_fmt(plan.plan_date)} has been {word}",
        sender_id=reviewer.id,
    )
    return plan


def list_trainee_day_plans(
    db: Session,
    *,
    actor: account_models.User,
    status: Optional[PlanStatus] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    trainee_id: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[Sequence[models.TraineeDayPlan], int]:
    qs = db.query(models.TraineeDayPlan)
    if actor.role == AccountRole.TRAINEE:
        qs = qs.filter(models.TraineeDayPlan.trainee_id == actor.id)
    elif actor.role == AccountRole.TRAINER:
        visible = list(actor.assigned_trainee_ids or [])
        if trainee_id:
            visible = [tid for tid in visible if tid == trainee_id]
        if not visible:
            return [], 0
        qs = qs.filter(models.TraineeDayPlan.trainee_id.in_(visible))
    elif trainee_id:
        qs = qs.filter(models.TraineeDayPlan.trainee_id == trainee_id)

    if status is not None:
        qs = qs.filter(models.TraineeDayPlan.status == status)
    if start and end:
        qs = qs.filter(models.TraineeDayPlan.plan_date >= start, models.TraineeDayPlan.plan_date <= end)

    total = qs.count()
    rows = (
        qs.order_by(models.TraineeDayPlan.plan_date.desc(), models.TraineeDayPlan.submitted_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def get_trainee_day_plan(
    db: Session, *, plan_id: str, actor: account_models.User
) -> models.TraineeDayPlan:
    plan = get_trainee_day_plan_or_404(db, plan_id)
    if actor.role == AccountRole.TRAINEE:
        _require_owner(plan, actor)
    elif actor.role == AccountRole.TRAINER:
        _require_assigned_trainer(db, plan, actor)
    return plan


# ---------------------------------------------------------------------------
# Trainer day plans
# ---------------------------------------------------------------------------


def _parse_hhmm(value: str, field_name: str) -> int:
    try:
        hours, minutes = value.split(":")
        h, m = int(hours), int(minutes)
    except (AttributeError, ValueError):
        raise ValidationError("Times must use HH:MM", error={field_name: value})
    if not (0 <= h < 24 and 0 <= m < 60):
        raise ValidationError("Times must use HH:MM", error={field_name: value})
    return h * 60 + m


def workday_hours(start_time: str, end_time: str) -> float:
    start = _parse_hhmm(start_time, "start_time")
    end = _parse_hhmm(end_time, "end_time")
    return (end - start) / 60.0


def _require_full_workday(start_time: str, end_time: str) -> float:
    hours = workday_hours(start_time, end_time)
    if hours != WORKDAY_HOURS:
        raise ValidationError(
            "Day plan must be exactly 8 hours long",
            error={"start_time": start_time, "end_time": end_time, "hours": hours},
        )
    return hours


def _normalise_day_plan_tasks(tasks: Optional[Sequence[dict]]) -> List[dict]:
    normalised = []
    for task in tasks or []:
        item = dict(task)
        item["status"] = item.get("status") or models.TaskStatus.PENDING.value
        item.setdefault("completed_at", None)
        normalised.append(item)
    return normalised


def _filter_audience(trainer: account_models.User, requested: Optional[Sequence[str]]) -> List[str]:
    allowed = set(trainer.assigned_trainee_ids or [])
    return [tid for tid in dict.fromkeys(requested or []) if tid in allowed]


def get_day_plan_or_404(db: Session, plan_id: str) -> models.DayPlan:
    plan = db.query(models.DayPlan).filter(models.DayPlan.id == plan_id).first()
    if not plan:
        raise NotFoundError("Day plan not found", error={"plan_id": plan_id})
    return plan


def _require_author(plan: models.DayPlan, trainer: account_models.User) -> None:
    if plan.trainer_id != trainer.id:
        raise ForbiddenError("Access denied", error={"plan_id": plan.id})


def _notify_audience(
    db: Session,
    plan: models.DayPlan,
    trainee_ids: Sequence[str],
    *,
    title: str,
    message: str,
    priority: notification_models.NotificationPriority,
) -> None:
    for trainee in account_services.find_users_by_ids(db, trainee_ids):
        notification_service.notify(
            db,
            recipient=trainee,
            type=notification_models.NotificationType.DAY_PLAN,
            title=title,
            message=message,
            priority=priority,
            sender_id=plan.trainer_id,
            related_entity_type="day_plan",
            related_entity_id=plan.id,
        )


def create_day_plan(
    db: Session,
    *,
    trainer: account_models.User,
    title: str,
    description: str,
    plan_date: date,
    start_time: str,
    end_time: str,
    tasks: Optional[Sequence[dict]] = None,
    audience_ids: Optional[Sequence[str]] = None,
    notes: Optional[str] = None,
) -> models.DayPlan:
    hours = _require_full_workday(start_time, end_time)
    plan = models.DayPlan(
        trainer_id=trainer.id,
        title=title,
        description=description,
        plan_date=plan_date,
        start_time=start_time,
        end_time=end_time,
        duration_hours=hours,
        tasks=_normalise_day_plan_tasks(tasks),
        audience_ids=_filter_audience(trainer, audience_ids),
        status=DayPlanStatus.DRAFT,
        notes=notes or "",
    )
    db.add(plan)
    db.flush()
    logger.info(
        "Day plan created",
        extra={"plan_id": plan.id, "trainer_id": trainer.id, "audience": len(plan.audience_ids)},
    )
    return plan


def update_day_plan(
    db: Session,
    *,
    plan_id: str,
    trainer: account_models.User,
    patch: Dict[str, Any],
) -> models.DayPlan:
    plan = get_day_plan_or_404(db, plan_id)
    _require_author(plan, trainer)
    if plan.status == DayPlanStatus.COMPLETED:
        raise ValidationError("Completed day plans cannot be changed", error={"status": plan.status.value})

    start_time = patch.get("start_time") or plan.start_time
    end_time = patch.get("end_time") or plan.end_time
    if "start_time" in patch or "end_time" in patch:
        plan.duration_hours = _require_full_workday(start_time, end_time)
        plan.start_time = start_time
        plan.end_time = end_time

    for field_name in ("title", "description", "plan_date", "notes", "feedback"):
        if patch.get(field_name) is not None:
            setattr(plan, field_name, patch[field_name])
    if patch.get("tasks") is not None:
        plan.tasks = _normalise_day_plan_tasks(patch["tasks"])

    added: List[str] = []
    if patch.get("audience_ids") is not None:
        audience = _filter_audience(trainer, patch["audience_ids"])
        added = [tid for tid in audience if tid not in (plan.audience_ids or [])]
        plan.audience_ids = audience

    db.add(plan)
    db.flush()

    if added and plan.status == DayPlanStatus.PUBLISHED:
        _notify_audience(
            db,
            plan,
            added,
            title="Day Plan Updated",
            message=f"You have been assigned to day plan: {plan.title}",
            priority=notification_models.NotificationPriority.MEDIUM,
        )
    return plan


def publish_day_plan(db: Session, *, plan_id: str, trainer: account_models.User) -> models.DayPlan:
    plan = get_day_plan_or_404(db, plan_id)
    _require_author(plan, trainer)
    apply_transition(
        db,
        actor_user_id=trainer.id,
        entity_type="day_plan",
        entity_id=plan.id,
        from_state=plan.status.value,
        to_state=DayPlanStatus.PUBLISHED.value,
        before_obj=None,
        after_obj={"tasks": list(plan.tasks or []), "audience_ids": list(plan.audience_ids or [])},
    )
    plan.status = DayPlanStatus.PUBLISHED
    plan.published_at = _utcnow()
    db.add(plan)
    db.flush()

    _notify_audience(
        db,
        plan,
        plan.audience_ids or [],
        title="Day Plan Published",
        message=f'Day plan "{plan.title}" has been published and is now available',
        priority=notification_models.NotificationPriority.HIGH,
    )
    return plan


def complete_day_plan(db: Session, *, plan_id: str, trainer: account_models.User) -> models.DayPlan:
    plan = get_day_plan_or_404(db, plan_id)
    _require_author(plan, trainer)
    apply_transition(
        db,
        actor_user_id=trainer.id,
        entity_type="day_plan",
        entity_id=plan.id,
        from_state=plan.status.value,
        to_state=DayPlanStatus.COMPLETED.value,
        before_obj=None,
        after_obj=None,
    )
    plan.status = DayPlanStatus.COMPLETED
    plan.completed_at = _utcnow()
    db.add(plan)
    db.flush()
    return plan


def update_task_status(
    db: Session,
    *,
    plan_id: str,
    trainee: account_models.User,
    task_index: int,
    status: models.TaskStatus,
) -> dict:
    plan = get_day_plan_or_404(db, plan_id)
    if trainee.id not in (plan.audience_ids or []):
        raise ForbiddenError("Access denied", error={"plan_id": plan.id})
    tasks = [dict(task) for task in plan.tasks or []]
    if not _valid_index(task_index, len(tasks)):
        raise ValidationError("Invalid task index", error={"task_index": task_index})

    task = tasks[task_index]
    task["status"] = status.value
    if status == models.TaskStatus.COMPLETED:
        task["completed_at"] = _utcnow().isoformat()
    plan.tasks = tasks
    db.add(plan)
    db.flush()
    return task


def delete_day_plan(db: Session, *, plan_id: str, trainer: account_models.User) -> None:
    plan = get_day_plan_or_404(db, plan_id)
    _require_author(plan, trainer)
    db.delete(plan)
    db.flush()


def list_day_plans(
    db: Session,
    *,
    actor: account_models.User,
    status: Optional[DayPlanStatus] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[Sequence[models.DayPlan], int]:
    qs = db.query(models.DayPlan)
    if actor.role == AccountRole.TRAINER:
        qs = qs.filter(models.DayPlan.trainer_id == actor.id)
    if status is not None:
        qs = qs.filter(models.DayPlan.status == status)
    if start and end:
        qs = qs.filter(models.DayPlan.plan_date >= start, models.DayPlan.plan_date <= end)
    qs = qs.order_by(models.DayPlan.plan_date.desc(), models.DayPlan.created_at.desc())

    if actor.role == AccountRole.TRAINEE:
        # Audience is a JSON list; filter in Python to stay portable.
        visible = [plan for plan in qs.all() if actor.id in (plan.audience_ids or [])]
        return _paginate(visible, page, limit), len(visible)

    total = qs.count()
    return qs.offset((page - 1) * limit).limit(limit).all(), total


def get_day_plan(db: Session, *, plan_id: str, actor: account_models.User) -> models.DayPlan:
    plan = get_day_plan_or_404(db, plan_id)
    if actor.role == AccountRole.TRAINEE and actor.id not in (plan.audience_ids or []):
        raise ForbiddenError("Access denied", error={"plan_id": plan.id})
    if actor.role == AccountRole.TRAINER:
        _require_author(plan, actor)
    return plan
