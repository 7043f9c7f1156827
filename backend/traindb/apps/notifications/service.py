from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from traindb.errors import NotFoundError, ValidationError
from traindb.apps.accounts import models as account_models

from . import models, providers

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_notification(
    db: Session,
    *,
    recipient: account_models.User,
    type: models.NotificationType,
    title: str,
    message: str,
    priority: models.NotificationPriority = models.NotificationPriority.MEDIUM,
    sender_id: Optional[str] = None,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[str] = None,
    requires_action: bool = False,
    action_url: Optional[str] = None,
    expires_at: Optional[datetime] = None,
) -> models.Notification:
    """
    Record an inbox row for `recipient` and hand it to the delivery provider.

    Provider failures mark the row FAILED; they are not raised.
    """
    notification = models.Notification(
        recipient_id=recipient.id,
        recipient_role=recipient.role,
        sender_id=sender_id,
        type=type,
        title=title,
        message=message,
        priority=priority,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        requires_action=requires_action,
        action_url=action_url,
        expires_at=expires_at,
        is_read=False,
        delivery_status=models.DeliveryStatus.QUEUED,
    )
    db.add(notification)
    db.flush()

    provider, configured = providers.get_notification_provider()
    if not configured:
        notification.delivery_status = models.DeliveryStatus.SKIPPED_NO_PROVIDER
        notification.delivery_error = "No provider configured"
        db.add(notification)
        return notification

    try:
        provider.deliver(
            notification_id=notification.id,
            recipient_id=notification.recipient_id,
            title=title,
            message=message,
            priority=priority.value,
        )
        notification.delivery_status = models.DeliveryStatus.SENT
        notification.delivered_at = _utcnow()
    except Exception as exc:
        notification.delivery_status = models.DeliveryStatus.FAILED
        notification.delivery_error = str(exc)
        logger.warning(
            "Notification delivery failed",
            extra={"notification_id": notification.id, "recipient_id": recipient.id},
        )
    db.add(notification)
    return notification


def notify(
    db: Session,
    *,
    recipient: account_models.User,
    type: models.NotificationType,
    title: str,
    message: str,
    priority: models.NotificationPriority = models.NotificationPriority.MEDIUM,
    sender_id: Optional[str] = None,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[str] = None,
    requires_action: bool = False,
    action_url: Optional[str] = None,
) -> Optional[models.Notification]:
    """
    Fire-and-forget notification used by the assignment and day-plan services.

    Runs in a SAVEPOINT: a failure here is logged and swallowed, and the
    caller's pending changes stay intact.
    """
    try:
        with db.begin_nested():
            return create_notification(
                db,
                recipient=recipient,
                type=type,
                title=title,
                message=message,
                priority=priority,
                sender_id=sender_id,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id,
                requires_action=requires_action,
                action_url=action_url,
            )
    except Exception:
        logger.warning(
            "Failed to create notification",
            exc_info=True,
            extra={
                "recipient_id": getattr(recipient, "id", None),
                "notification_type": getattr(type, "value", type),
                "related_entity_type": related_entity_type,
                "related_entity_id": related_entity_id,
            },
        )
        return None


def notify_sign_in(db: Session, *, user: account_models.User) -> List[models.Notification]:
    """Tell every master trainer that a trainer or trainee has signed in."""
    master_trainers = (
        db.query(account_models.User)
        .filter(account_models.User.role == account_models.AccountRole.MASTER_TRAINER)
        .filter(account_models.User.is_active.is_(True))
        .all()
    )
    label = "Trainer" if user.role == account_models.AccountRole.TRAINER else "Trainee"
    sent: List[models.Notification] = []
    for master in master_trainers:
        notification = notify(
            db,
            recipient=master,
            type=models.NotificationType.SIGN_IN_NOTIFICATION,
            title=f"{label} Signed In",
            message=f"{user.name} ({user.role.value.lower()}) has signed in to the system",
            priority=models.NotificationPriority.LOW,
            sender_id=user.id,
        )
        if notification is not None:
            sent.append(notification)
    return sent


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


def list_notifications(
    db: Session,
    *,
    recipient_id: str,
    is_read: Optional[bool] = None,
    type: Optional[models.NotificationType] = None,
    priority: Optional[models.NotificationPriority] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[Sequence[models.Notification], int]:
    qs = db.query(models.Notification).filter(models.Notification.recipient_id == recipient_id)
    if is_read is not None:
        qs = qs.filter(models.Notification.is_read.is_(is_read))
    if type is not None:
        qs = qs.filter(models.Notification.type == type)
    if priority is not None:
        qs = qs.filter(models.Notification.priority == priority)
    total = qs.count()
    rows = (
        qs.order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def unread_count(db: Session, *, recipient_id: str) -> int:
    return (
        db.query(models.Notification)
        .filter(models.Notification.recipient_id == recipient_id)
        .filter(models.Notification.is_read.is_(False))
        .count()
    )


def _get_owned(db: Session, notification_id: str, recipient_id: str) -> models.Notification:
    notification = (
        db.query(models.Notification)
        .filter(models.Notification.id == notification_id)
        .filter(models.Notification.recipient_id == recipient_id)
        .first()
    )
    if not notification:
        raise NotFoundError("Notification not found", error={"notification_id": notification_id})
    return notification


def mark_read(db: Session, *, notification_id: str, recipient_id: str) -> models.Notification:
    notification = _get_owned(db, notification_id, recipient_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = _utcnow()
        db.add(notification)
        db.flush()
    return notification


def mark_all_read(db: Session, *, recipient_id: str) -> int:
    updated = (
        db.query(models.Notification)
        .filter(models.Notification.recipient_id == recipient_id)
        .filter(models.Notification.is_read.is_(False))
        .update({"is_read": True, "read_at": _utcnow()}, synchronize_session="fetch")
    )
    db.flush()
    return updated


def delete_notification(db: Session, *, notification_id: str, recipient_id: str) -> None:
    notification = _get_owned(db, notification_id, recipient_id)
    db.delete(notification)
    db.flush()


def notification_stats(
    db: Session,
    *,
    recipient_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    qs = db.query(
        models.Notification.is_read,
        models.Notification.priority,
        models.Notification.requires_action,
        func.count(models.Notification.id),
    ).filter(models.Notification.recipient_id == recipient_id)
    if start and end:
        qs = qs.filter(models.Notification.created_at >= start).filter(
            models.Notification.created_at <= end
        )
    stats = {
        "total_notifications": 0,
        "unread_notifications": 0,
        "read_notifications": 0,
        "urgent_notifications": 0,
        "high_priority_notifications": 0,
        "action_required_notifications": 0,
    }
    grouped = qs.group_by(
        models.Notification.is_read,
        models.Notification.priority,
        models.Notification.requires_action,
    ).all()
    for is_read, priority, requires_action, count in grouped:
        stats["total_notifications"] += count
        if is_read:
            stats["read_notifications"] += count
        else:
            stats["unread_notifications"] += count
        if priority == models.NotificationPriority.URGENT:
            stats["urgent_notifications"] += count
        elif priority == models.NotificationPriority.HIGH:
            stats["high_priority_notifications"] += count
        if requires_action:
            stats["action_required_notifications"] += count
    return stats


def send_direct(
    db: Session,
    *,
    sender: account_models.User,
    recipient_id: str,
    title: str,
    message: str,
    type: models.NotificationType = models.NotificationType.GENERAL,
    priority: models.NotificationPriority = models.NotificationPriority.MEDIUM,
    requires_action: bool = False,
    action_url: Optional[str] = None,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[str] = None,
) -> models.Notification:
    recipient = db.query(account_models.User).filter(account_models.User.id == recipient_id).first()
    if not recipient:
        raise ValidationError("Recipient not found", error={"recipient_id": recipient_id})
    notification = create_notification(
        db,
        recipient=recipient,
        type=type,
        title=title,
        message=message,
        priority=priority,
        sender_id=sender.id,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        requires_action=requires_action,
        action_url=action_url,
    )
    db.flush()
    return notification


def send_bulk(
    db: Session,
    *,
    sender: account_models.User,
    recipient_ids: Sequence[str],
    title: str,
    message: str,
    type: models.NotificationType = models.NotificationType.GENERAL,
    priority: models.NotificationPriority = models.NotificationPriority.MEDIUM,
    requires_action: bool = False,
    action_url: Optional[str] = None,
) -> List[models.Notification]:
    ids = list(dict.fromkeys(str(r) for r in recipient_ids if r))
    if not ids:
        raise ValidationError("At least one recipient is required")
    recipients = db.query(account_models.User).filter(account_models.User.id.in_(ids)).all()
    by_id = {r.id: r for r in recipients}
    missing = [rid for rid in ids if rid not in by_id]
    if missing:
        raise ValidationError("Some recipients not found", error={"recipient_ids": missing})

    sent = [
        create_notification(
            db,
            recipient=by_id[rid],
            type=type,
            title=title,
            message=message,
            priority=priority,
            sender_id=sender.id,
            requires_action=requires_action,
            action_url=action_url,
        )
        for rid in ids
    ]
    db.flush()
    return sent
