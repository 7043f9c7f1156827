from __future__ import annotations

import math
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from traindb.database import get_db
from traindb.security import STAFF_ROLES, require_roles
from traindb.apps.accounts.models import AccountRole, User
from traindb.apps.accounts.schemas import UserSummary

from . import models, schemas, services

router = APIRouter(prefix="/assignments", tags=["assignments"])


@router.post(
    "",
    response_model=schemas.BindResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign trainees to a trainer",
)
def bind_trainees(
    payload: schemas.AssignmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    result = services.bind_trainees(
        db,
        trainer_id=payload.trainer_id,
        trainee_ids=payload.trainee_ids,
        requested_by=current_user,
        effective_date=payload.effective_date,
        notes=payload.notes,
        instructions=payload.instructions,
    )
    db.commit()
    db.refresh(result.assignment)
    return schemas.BindResponse(
        message=(
            "Assignment updated successfully" if result.is_update else "Assignment created successfully"
        ),
        assignment=result.assignment,
        is_update=result.is_update,
        total_trainees=result.total_trainees,
        newly_assigned=result.newly_assigned,
    )


@router.get("", response_model=schemas.AssignmentListResponse)
def list_assignments(
    status_filter: Optional[models.AssignmentStatus] = Query(None, alias="status"),
    trainer_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    rows, total = services.list_assignments(
        db,
        current_user=current_user,
        status=status_filter,
        trainer_id=trainer_id,
        page=page,
        limit=limit,
    )
    return schemas.AssignmentListResponse(
        assignments=rows,
        total=total,
        total_pages=math.ceil(total / limit) if total else 0,
        current_page=page,
    )


@router.get("/trainer", response_model=schemas.TrainerView)
def get_trainer_assignment(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    return services.get_trainer_view(db, current_user)


@router.get("/trainee", response_model=schemas.TraineeView)
def get_trainee_assignment(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINEE)),
):
    return services.get_trainee_view(db, current_user)


@router.get("/trainers/available", response_model=List[UserSummary])
def list_available_trainers(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    return services.list_available_trainers(db)


@router.get("/trainees/unassigned", response_model=List[UserSummary])
def list_unassigned_trainees(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    return services.list_unassigned_trainees(db)


@router.post("/sync", response_model=schemas.SyncSummary)
def sync_assignments(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    summary = services.sync_assignments_to_users(db)
    db.commit()
    return schemas.SyncSummary(message="Assignments synced to users", **summary)


@router.put("/{assignment_id}", response_model=schemas.AssignmentMutationResponse)
def update_assignment(
    assignment_id: str,
    payload: schemas.AssignmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    assignment = services.update_assignment(
        db,
        assignment_id=assignment_id,
        requested_by=current_user,
        trainee_ids=payload.trainee_ids,
        notes=payload.notes,
        instructions=payload.instructions,
        effective_date=payload.effective_date,
    )
    db.commit()
    db.refresh(assignment)
    return schemas.AssignmentMutationResponse(
        message="Assignment updated successfully", assignment=assignment
    )


@router.put("/{assignment_id}/complete", response_model=schemas.AssignmentMutationResponse)
def complete_assignment(
    assignment_id: str,
    payload: Optional[schemas.AssignmentComplete] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    assignment = services.complete_assignment(
        db,
        assignment_id=assignment_id,
        requested_by=current_user,
        end_date=payload.end_date if payload else None,
    )
    db.commit()
    db.refresh(assignment)
    return schemas.AssignmentMutationResponse(
        message="Assignment completed successfully", assignment=assignment
    )


@router.put("/{assignment_id}/acknowledge", response_model=schemas.AssignmentMutationResponse)
def acknowledge_assignment(
    assignment_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    assignment = services.acknowledge_assignment(
        db, assignment_id=assignment_id, trainer=current_user
    )
    db.commit()
    db.refresh(assignment)
    return schemas.AssignmentMutationResponse(
        message="Assignment acknowledged successfully", assignment=assignment
    )
