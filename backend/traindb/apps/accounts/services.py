from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from traindb.errors import ConflictError, NotFoundError, ValidationError
from traindb.apps.assignments import models as assignment_models
from traindb.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    get_password_hash,
    verify_password,
)

from . import models, schemas

logger = logging.getLogger(__name__)


# Only the assignments reconciler may write these.
RELATIONSHIP_FIELDS = frozenset({"assigned_trainer_id", "assigned_trainee_ids"})

_UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "email",
        "role",
        "employee_id",
        "department",
        "phone",
        "joining_date",
        "status",
        "is_active",
    }
)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AuthenticationError(Exception):
    """Raised when login credentials are invalid or the account is inactive."""


# ---------------------------------------------------------------------------
# Normalisation helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalise_email(value: str) -> str:
    return value.strip().lower()


def _normalise_employee_id(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip().upper()
    return cleaned or None


# ---------------------------------------------------------------------------
# Directory lookups
# ---------------------------------------------------------------------------


def get_user(db: Session, user_id: Optional[str]) -> Optional[models.User]:
    if not user_id:
        return None
    return db.query(models.User).filter(models.User.id == str(user_id).strip()).first()


def get_user_or_404(db: Session, user_id: str) -> models.User:
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError("User not found", error={"user_id": user_id})
    return user


def find_users_by_ids(db: Session, user_ids: Iterable[str]) -> List[models.User]:
    """
    Resolve ids to users, preserving the order of `user_ids`.

    Unknown ids are skipped; callers compare lengths when every id must exist.
    """
    ids = [str(user_id) for user_id in user_ids if user_id]
    if not ids:
        return []
    rows = db.query(models.User).filter(models.User.id.in_(ids)).all()
    by_id = {row.id: row for row in rows}
    seen = set()
    ordered: List[models.User] = []
    for user_id in ids:
        if user_id in by_id and user_id not in seen:
            ordered.append(by_id[user_id])
            seen.add(user_id)
    return ordered


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == _normalise_email(email)).first()


def list_users(
    db: Session,
    *,
    role: Optional[models.AccountRole] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[Sequence[models.User], int]:
    qs = db.query(models.User)
    if role is not None:
        qs = qs.filter(models.User.role == role)
    if is_active is not None:
        qs = qs.filter(models.User.is_active.is_(is_active))
    if search:
        term = f"%{search.strip()}%"
        qs = qs.filter(
            or_(
                models.User.name.ilike(term),
                models.User.email.ilike(term),
                models.User.employee_id.ilike(term),
            )
        )
    total = qs.count()
    users = qs.order_by(models.User.name.asc()).offset(offset).limit(limit).all()
    return users, total


# ---------------------------------------------------------------------------
# Directory writes
# ---------------------------------------------------------------------------


def _active_links(db: Session, user: models.User) -> dict:
    """
    Trainer/trainee links the user currently takes part in, from both the
    relationship fields and the ACTIVE ledger rows. Empty when unbound.
    """
    links: dict = {}
    if user.assigned_trainer_id:
        links["assigned_trainer_id"] = user.assigned_trainer_id
    if user.assigned_trainee_ids:
        links["assigned_trainee_ids"] = list(user.assigned_trainee_ids)

    active = (
        db.query(assignment_models.Assignment)
        .filter(assignment_models.Assignment.status == assignment_models.AssignmentStatus.ACTIVE)
        .all()
    )
    assignment_ids = [
        row.id for row in active if row.trainer_id == user.id or user.id in (row.trainee_ids or [])
    ]
    if assignment_ids:
        links["assignment_ids"] = assignment_ids
    return links


def _require_unbound(db: Session, user: models.User, action: str) -> None:
    links = _active_links(db, user)
    if links:
        raise ConflictError(
            f"Cannot {action} while the user has active trainer/trainee links; "
            "complete or edit the assignment first",
            error={"user_id": user.id, **links},
        )


def create_user(
    db: Session,
    *,
    data: schemas.UserCreate,
    created_by_id: Optional[str] = None,
) -> models.User:
    email = _normalise_email(data.email)
    employee_id = _normalise_employee_id(data.employee_id)

    if get_user_by_email(db, email):
        raise ConflictError("A user with this email already exists", error={"email": email})
    if employee_id and (
        db.query(models.User).filter(models.User.employee_id == employee_id).first()
    ):
        raise ConflictError(
            "A user with this employee id already exists",
            error={"employee_id": employee_id},
        )

    user = models.User(
        name=data.name.strip(),
        email=email,
        hashed_password=get_password_hash(data.password),
        role=data.role,
        status=data.status,
        employee_id=employee_id,
        department=data.department,
        phone=data.phone,
        joining_date=data.joining_date,
        assigned_trainee_ids=[],
        created_by_id=created_by_id,
    )
    db.add(user)
    db.flush()
    logger.info("User created", extra={"user_id": user.id, "role": user.role.value})
    return user


def update_user(db: Session, user: models.User, patch: dict) -> models.User:
    """
    Apply a partial update to a person record.

    Relationship fields are rejected outright; they are maintained by the
    assignments reconciler so that both sides of a trainer/trainee link
    always move together.
    Changing the role of, or deactivating, a user who is still bound is
    refused until the assignment is completed or edited.
    """
    forbidden = RELATIONSHIP_FIELDS.intersection(patch)
    if forbidden:
        raise ValidationError(
            "Trainer/trainee links can only be changed through assignments",
            error={"fields": sorted(forbidden)},
        )
    unknown = set(patch) - _UPDATABLE_FIELDS
    if unknown:
        raise ValidationError("Unknown user fields", error={"fields": sorted(unknown)})

    if "email" in patch and patch["email"] is not None:
        email = _normalise_email(patch["email"])
        existing = get_user_by_email(db, email)
        if existing and existing.id != user.id:
            raise ConflictError("A user with this email already exists", error={"email": email})
        patch = {**patch, "email": email}
    if "employee_id" in patch:
        employee_id = _normalise_employee_id(patch["employee_id"])
        if employee_id:
            existing = (
                db.query(models.User).filter(models.User.employee_id == employee_id).first()
            )
            if existing and existing.id != user.id:
                raise ConflictError(
                    "A user with this employee id already exists",
                    error={"employee_id": employee_id},
                )
        patch = {**patch, "employee_id": employee_id}

    if "role" in patch and patch["role"] is not None and patch["role"] != user.role:
        _require_unbound(db, user, "change the role")
    if patch.get("is_active") is False and user.is_active:
        _require_unbound(db, user, "deactivate the user")

    for field, value in patch.items():
        setattr(user, field, value)
    user.updated_at = _utcnow()
    db.add(user)
    db.flush()
    return user


def deactivate_user(db: Session, user: models.User) -> models.User:
    _require_unbound(db, user, "deactivate the user")
    user.is_active = False
    user.status = "inactive"
    user.updated_at = _utcnow()
    db.add(user)
    db.flush()
    return user


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def authenticate_user(db: Session, *, email: str, password: str) -> models.User:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        logger.info("Login failed", extra={"email": _normalise_email(email)})
        raise AuthenticationError("Incorrect email or password.")
    if not user.is_active:
        raise AuthenticationError("This account has been deactivated.")

    user.last_login_at = _utcnow()
    db.add(user)
    db.flush()
    return user


def issue_access_token_for_user(user: models.User) -> Tuple[str, int]:
    """
    Create a JWT access token for the user.

    Returns (token_string, expires_in_seconds).
    """
    expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user.id),
        "author_id": user.author_id,
        "role": user.role.value if hasattr(user.role, "value") else str(user.role),
    }
    token = create_access_token(data=payload, expires_delta=expires_delta)
    return token, int(expires_delta.total_seconds())
