# backend/traindb/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    JSON,
    String,
)

from traindb.database import Base
from traindb.utils.identifiers import generate_author_id, generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class AccountRole(str, enum.Enum):
    """Roles used across the training programme.

    ADMIN is the platform owner and passes every role check.
    """

    TRAINEE = "TRAINEE"
    TRAINER = "TRAINER"
    MASTER_TRAINER = "MASTER_TRAINER"
    BOA = "BOA"                       # back-office administrator
    ADMIN = "ADMIN"


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class User(Base):
    """
    Person record in the directory store.

    Relationship fields are denormalised copies of the assignment ledger,
    kept so that dashboards and day-plan scoping can read them without a
    ledger lookup:

    - assigned_trainer_id: meaningful only for TRAINEE users.
    - assigned_trainee_ids: meaningful only for TRAINER users.

    For every trainee t with t.assigned_trainer_id == T.id, T's
    assigned_trainee_ids contains t.id, and vice versa. Only
    `traindb.apps.assignments.services` writes these two columns.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    author_id = Column(
        String(36),
        unique=True,
        nullable=False,
        default=generate_author_id,
        index=True,
        doc="Stable external identifier shared with other systems.",
    )

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)

    role = Column(
        Enum(AccountRole, name="account_role_enum"),
        nullable=False,
        default=AccountRole.TRAINEE,
        index=True,
    )

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    status = Column(
        String(32),
        nullable=False,
        default="active",
        doc="Onboarding status (e.g. 'pending', 'active').",
    )

    employee_id = Column(String(64), nullable=True, unique=True)
    department = Column(String(128), nullable=True)
    phone = Column(String(64), nullable=True)
    joining_date = Column(Date, nullable=True)

    assigned_trainer_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_trainee_ids = Column(JSON, nullable=False, default=list)

    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_by_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"
