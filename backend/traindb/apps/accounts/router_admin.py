# backend/traindb/apps/accounts/router_admin.py

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from traindb.database import get_db
from traindb.security import STAFF_ROLES, require_roles
from traindb.apps.audit import services as audit_services

from . import models, schemas, services

router = APIRouter(prefix="/admin/users", tags=["admin-users"])

_MAX_PAGE_SIZE = 500


@router.post(
    "",
    response_model=schemas.UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a trainee, trainer or staff account",
)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(*STAFF_ROLES)),
):
    user = services.create_user(db, data=payload, created_by_id=current_user.id)
    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        entity_type="user",
        entity_id=user.id,
        action="user_create",
        after={"email": user.email, "role": user.role.value},
        metadata={"module": "accounts"},
    )
    db.commit()
    db.refresh(user)
    return user


@router.get(
    "",
    response_model=schemas.UserListResponse,
    summary="List users",
)
def list_users(
    role: Optional[models.AccountRole] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(*STAFF_ROLES)),
):
    limit = max(1, min(limit, _MAX_PAGE_SIZE))
    offset = max(0, offset)
    users, total = services.list_users(
        db, role=role, is_active=is_active, search=search, limit=limit, offset=offset
    )
    return schemas.UserListResponse(users=users, total=total)


@router.get(
    "/{user_id}",
    response_model=schemas.UserRead,
    summary="Get a user by id",
)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(*STAFF_ROLES)),
):
    return services.get_user_or_404(db, user_id)


@router.patch(
    "/{user_id}",
    response_model=schemas.UserRead,
    summary="Update profile fields of a user",
)
def update_user(
    user_id: str,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(*STAFF_ROLES)),
):
    user = services.get_user_or_404(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    services.update_user(db, user, changes)
    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        entity_type="user",
        entity_id=user.id,
        action="user_update",
        after={k: str(v) for k, v in changes.items()},
        metadata={"module": "accounts"},
    )
    db.commit()
    db.refresh(user)
    return user


@router.post(
    "/{user_id}/deactivate",
    response_model=schemas.UserRead,
    summary="Deactivate a user account",
)
def deactivate_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(*STAFF_ROLES)),
):
    user = services.get_user_or_404(db, user_id)
    services.deactivate_user(db, user)
    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        entity_type="user",
        entity_id=user.id,
        action="user_deactivate",
        metadata={"module": "accounts"},
    )
    db.commit()
    db.refresh(user)
    return user
