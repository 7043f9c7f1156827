from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from traindb.security import get_current_active_user, require_roles
from traindb.apps.accounts.models import AccountRole, User
from traindb.database import get_db

from . import models, schemas, service


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=schemas.NotificationListResponse)
def list_notifications(
    is_read: Optional[bool] = None,
    type: Optional[models.NotificationType] = None,
    priority: Optional[models.NotificationPriority] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    rows, total = service.list_notifications(
        db,
        recipient_id=current_user.id,
        is_read=is_read,
        type=type,
        priority=priority,
        page=page,
        limit=limit,
    )
    return schemas.NotificationListResponse(
        notifications=rows,
        total=total,
        total_pages=math.ceil(total / limit) if total else 0,
        current_page=page,
    )


@router.get("/unread-count", response_model=schemas.UnreadCountResponse)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return schemas.UnreadCountResponse(
        unread_count=service.unread_count(db, recipient_id=current_user.id)
    )


@router.get("/stats", response_model=schemas.NotificationStats)
def get_notification_stats(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return schemas.NotificationStats(
        **service.notification_stats(db, recipient_id=current_user.id, start=start, end=end)
    )


@router.put("/mark-all-read", response_model=schemas.MessageResponse)
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    updated = service.mark_all_read(db, recipient_id=current_user.id)
    db.commit()
    return schemas.MessageResponse(message=f"{updated} notifications marked as read")


@router.put("/{notification_id}/read", response_model=schemas.NotificationMutationResponse)
def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    notification = service.mark_read(
        db, notification_id=notification_id, recipient_id=current_user.id
    )
    db.commit()
    return schemas.NotificationMutationResponse(
        message="Notification marked as read", notification=notification
    )


@router.delete("/{notification_id}", response_model=schemas.MessageResponse)
def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    service.delete_notification(db, notification_id=notification_id, recipient_id=current_user.id)
    db.commit()
    return schemas.MessageResponse(message="Notification deleted successfully")


@router.post(
    "/create",
    response_model=schemas.NotificationMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_notification(
    payload: schemas.NotificationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.MASTER_TRAINER, AccountRole.TRAINER)),
):
    notification = service.send_direct(
        db,
        sender=current_user,
        recipient_id=payload.recipient_id,
        title=payload.title,
        message=payload.message,
        type=payload.type,
        priority=payload.priority,
        requires_action=payload.requires_action,
        action_url=payload.action_url,
        related_entity_type=payload.related_entity_type,
        related_entity_id=payload.related_entity_id,
    )
    db.commit()
    return schemas.NotificationMutationResponse(
        message="Notification created successfully", notification=notification
    )


@router.post(
    "/bulk",
    response_model=schemas.NotificationBulkResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_bulk_notifications(
    payload: schemas.NotificationBulkCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.MASTER_TRAINER, AccountRole.TRAINER)),
):
    sent = service.send_bulk(
        db,
        sender=current_user,
        recipient_ids=payload.recipient_ids,
        title=payload.title,
        message=payload.message,
        type=payload.type,
        priority=payload.priority,
        requires_action=payload.requires_action,
        action_url=payload.action_url,
    )
    db.commit()
    return schemas.NotificationBulkResponse(
        message=f"{len(sent)} notifications sent successfully", notifications=sent
    )


@router.post(
    "/sign-in",
    response_model=schemas.NotificationBulkResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_sign_in_notification(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER, AccountRole.TRAINEE)),
):
    sent = service.notify_sign_in(db, user=current_user)
    db.commit()
    return schemas.NotificationBulkResponse(
        message=f"Sign-in notification sent to {len(sent)} Master Trainer(s)",
        notifications=sent,
    )
