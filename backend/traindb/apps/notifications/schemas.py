from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from traindb.apps.accounts.models import AccountRole

from .models import DeliveryStatus, NotificationPriority, NotificationType


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient_id: str
    recipient_role: AccountRole
    sender_id: Optional[str] = None
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    requires_action: bool
    action_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    delivery_status: DeliveryStatus
    delivery_error: Optional[str] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationRead]
    total: int
    total_pages: int
    current_page: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class NotificationStats(BaseModel):
    total_notifications: int = 0
    unread_notifications: int = 0
    read_notifications: int = 0
    urgent_notifications: int = 0
    high_priority_notifications: int = 0
    action_required_notifications: int = 0


class NotificationCreate(BaseModel):
    recipient_id: str
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=1000)
    type: NotificationType = NotificationType.GENERAL
    priority: NotificationPriority = NotificationPriority.MEDIUM
    requires_action: bool = False
    action_url: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None


class NotificationBulkCreate(BaseModel):
    recipient_ids: List[str] = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=1000)
    type: NotificationType = NotificationType.GENERAL
    priority: NotificationPriority = NotificationPriority.MEDIUM
    requires_action: bool = False
    action_url: Optional[str] = None


class NotificationMutationResponse(BaseModel):
    success: bool = True
    message: str
    notification: Optional[NotificationRead] = None


class NotificationBulkResponse(BaseModel):
    success: bool = True
    message: str
    notifications: List[NotificationRead] = []


class MessageResponse(BaseModel):
    success: bool = True
    message: str
