from __future__ import annotations

import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from traindb.database import get_db
from traindb.security import get_current_active_user, require_roles
from traindb.apps.accounts.models import AccountRole, User

from . import models, schemas, services

router = APIRouter(prefix="/observations", tags=["observations"])


@router.post(
    "",
    response_model=schemas.ObservationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_observation(
    payload: schemas.ObservationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    observation = services.create_observation(
        db,
        trainer=current_user,
        trainee_id=payload.trainee_id,
        observation_date=payload.observation_date,
        culture=payload.culture.model_dump(mode="json"),
        grooming=payload.grooming.model_dump(mode="json"),
        overall_rating=payload.overall_rating,
        strengths=payload.strengths,
        areas_for_improvement=payload.areas_for_improvement,
        recommendations=payload.recommendations,
    )
    db.commit()
    db.refresh(observation)
    return schemas.ObservationResponse(
        message="Observation created successfully", observation=observation
    )


@router.get("", response_model=schemas.ObservationListResponse)
def list_observations(
    trainee_id: Optional[str] = None,
    trainer_id: Optional[str] = None,
    status_filter: Optional[models.ObservationStatus] = Query(None, alias="status"),
    start: Optional[date] = None,
    end: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    rows, total = services.list_observations(
        db,
        actor=current_user,
        trainee_id=trainee_id,
        trainer_id=trainer_id,
        status=status_filter,
        start=start,
        end=end,
        page=page,
        limit=limit,
    )
    return schemas.ObservationListResponse(
        observations=rows,
        total=total,
        total_pages=math.ceil(total / limit) if total else 0,
        current_page=page,
    )


@router.get("/stats", response_model=schemas.ObservationStats)
def observation_stats(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER, AccountRole.MASTER_TRAINER)),
):
    return services.observation_stats(db, actor=current_user, start=start, end=end)


@router.get("/{observation_id}", response_model=schemas.ObservationRead)
def get_observation(
    observation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.get_observation(db, observation_id=observation_id, actor=current_user)


@router.put("/{observation_id}", response_model=schemas.ObservationResponse)
def update_observation(
    observation_id: str,
    payload: schemas.ObservationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    observation = services.update_observation(
        db,
        observation_id=observation_id,
        trainer=current_user,
        patch=payload.model_dump(mode="json", exclude_unset=True),
    )
    db.commit()
    db.refresh(observation)
    return schemas.ObservationResponse(
        message="Observation updated successfully", observation=observation
    )


@router.put("/{observation_id}/submit", response_model=schemas.ObservationResponse)
def submit_observation(
    observation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    observation = services.submit_observation(
        db, observation_id=observation_id, trainer=current_user
    )
    db.commit()
    db.refresh(observation)
    return schemas.ObservationResponse(
        message="Observation submitted successfully", observation=observation
    )


@router.put("/{observation_id}/review", response_model=schemas.ObservationResponse)
def review_observation(
    observation_id: str,
    payload: schemas.ObservationReviewRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.MASTER_TRAINER)),
):
    observation = services.review_observation(
        db,
        observation_id=observation_id,
        reviewer=current_user,
        master_trainer_notes=payload.master_trainer_notes,
    )
    db.commit()
    db.refresh(observation)
    return schemas.ObservationResponse(
        message="Observation reviewed successfully", observation=observation
    )
