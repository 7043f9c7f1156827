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
    String,
    Text,
)

from traindb.database import Base
from traindb.apps.accounts.models import AccountRole
from traindb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationType(str, enum.Enum):
    ASSIGNMENT = "ASSIGNMENT"
    DAY_PLAN = "DAY_PLAN"
    TRAINEE_DAY_PLAN = "TRAINEE_DAY_PLAN"
    OBSERVATION = "OBSERVATION"
    SIGN_IN_NOTIFICATION = "SIGN_IN_NOTIFICATION"
    GENERAL = "GENERAL"


class NotificationPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class DeliveryStatus(str, enum.Enum):
    QUEUED = "QUEUED"
    SENT = "SENT"
    FAILED = "FAILED"
    SKIPPED_NO_PROVIDER = "SKIPPED_NO_PROVIDER"


class Notification(Base):
    """Inbox row addressed to a single person."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read_created", "recipient_id", "is_read", "created_at"),
        Index("ix_notifications_type_created", "type", "created_at"),
        Index("ix_notifications_related", "related_entity_type", "related_entity_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    recipient_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_role = Column(
        SAEnum(AccountRole, name="notification_recipient_role_enum", native_enum=False),
        nullable=False,
    )
    sender_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    type = Column(
        SAEnum(NotificationType, name="notification_type_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(
        SAEnum(NotificationPriority, name="notification_priority_enum", native_enum=False),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )

    related_entity_type = Column(String(64), nullable=True)
    related_entity_id = Column(String(64), nullable=True)

    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    requires_action = Column(Boolean, nullable=False, default=False)
    action_url = Column(String(512), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    delivery_status = Column(
        SAEnum(DeliveryStatus, name="notification_delivery_status_enum", native_enum=False),
        nullable=False,
        default=DeliveryStatus.QUEUED,
        index=True,
    )
    delivery_error = Column(Text, nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Notification id={self.id} recipient={self.recipient_id} type={self.type}>"
