# backend/traindb/apps/accounts/router_public.py

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from traindb.database import get_db
from traindb.security import get_current_active_user
from traindb.apps.notifications import service as notification_service

from . import models, schemas, services

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=schemas.Token,
    summary="Login with email and password",
)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    """
    Exchange email + password for a bearer token.

    Trainer and trainee sign-ins are announced to every master trainer
    (best-effort, never blocks the login).
    """
    try:
        user = services.authenticate_user(db, email=payload.email, password=payload.password)
    except services.AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc) or "Incorrect email or password.",
        )

    if user.role in (models.AccountRole.TRAINER, models.AccountRole.TRAINEE):
        notification_service.notify_sign_in(db, user=user)

    db.commit()
    db.refresh(user)

    token, expires_in = services.issue_access_token_for_user(user)
    return schemas.Token(access_token=token, expires_in=expires_in, user=user)


@router.get(
    "/me",
    response_model=schemas.UserRead,
    summary="Get current logged-in user",
)
def read_current_user(
    current_user: models.User = Depends(get_current_active_user),
):
    return current_user
