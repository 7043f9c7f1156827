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

trainee_router = APIRouter(prefix="/trainee-dayplans", tags=["trainee-day-plans"])
trainer_router = APIRouter(prefix="/dayplans", tags=["day-plans"])


def _pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0


# ---------------------------------------------------------------------------
# /trainee-dayplans
# ---------------------------------------------------------------------------


@trainee_router.post(
    "",
    response_model=schemas.TraineeDayPlanResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_trainee_day_plan(
    payload: schemas.TraineeDayPlanCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINEE, AccountRole.TRAINER)),
):
    plan = services.create_trainee_day_plan(
        db,
        actor=current_user,
        plan_date=payload.plan_date,
        tasks=[task.model_dump(mode="json") for task in payload.tasks],
        checkboxes=payload.checkboxes,
        submit=payload.submit,
        trainee_id=payload.trainee_id,
    )
    db.commit()
    db.refresh(plan)
    return schemas.TraineeDayPlanResponse(
        message="Day plan submitted successfully" if payload.submit else "Day plan saved as draft",
        day_plan=plan,
    )


@trainee_router.get("", response_model=schemas.TraineeDayPlanListResponse)
def list_trainee_day_plans(
    status_filter: Optional[models.TraineeDayPlanStatus] = Query(None, alias="status"),
    start: Optional[date] = None,
    end: Optional[date] = None,
    trainee_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    rows, total = services.list_trainee_day_plans(
        db,
        actor=current_user,
        status=status_filter,
        start=start,
        end=end,
        trainee_id=trainee_id,
        page=page,
        limit=limit,
    )
    return schemas.TraineeDayPlanListResponse(
        day_plans=rows, total=total, total_pages=_pages(total, limit), current_page=page
    )


@trainee_router.post("/eod-update", response_model=schemas.TraineeDayPlanResponse)
def submit_eod_update(
    payload: schemas.EodUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINEE)),
):
    plan = services.submit_eod_update(
        db,
        trainee=current_user,
        plan_date=payload.plan_date,
        tasks=[item.model_dump(mode="json") for item in payload.tasks],
        overall_remarks=payload.overall_remarks,
    )
    db.commit()
    db.refresh(plan)
    return schemas.TraineeDayPlanResponse(message="EOD update submitted successfully", day_plan=plan)


@trainee_router.get("/{plan_id}", response_model=schemas.TraineeDayPlanRead)
def get_trainee_day_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.get_trainee_day_plan(db, plan_id=plan_id, actor=current_user)


@trainee_router.put("/{plan_id}", response_model=schemas.TraineeDayPlanResponse)
def update_trainee_day_plan(
    plan_id: str,
    payload: schemas.TraineeDayPlanUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINEE)),
):
    plan = services.update_trainee_day_plan(
        db,
        plan_id=plan_id,
        actor=current_user,
        tasks=(
            [task.model_dump(mode="json") for task in payload.tasks]
            if payload.tasks is not None
            else None
        ),
        checkboxes=payload.checkboxes,
    )
    db.commit()
    db.refresh(plan)
    return schemas.TraineeDayPlanResponse(message="Day plan updated successfully", day_plan=plan)


@trainee_router.put("/{plan_id}/submit", response_model=schemas.TraineeDayPlanResponse)
def submit_trainee_day_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINEE)),
):
    plan = services.submit_trainee_day_plan(db, plan_id=plan_id, actor=current_user)
    db.commit()
    db.refresh(plan)
    return schemas.TraineeDayPlanResponse(message="Day plan submitted successfully", day_plan=plan)


@trainee_router.put("/{plan_id}/review", response_model=schemas.TraineeDayPlanResponse)
def review_trainee_day_plan(
    plan_id: str,
    payload: schemas.ReviewRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    plan = services.review_trainee_day_plan(
        db,
        plan_id=plan_id,
        reviewer=current_user,
        decision=payload.decision,
        comments=payload.comments,
    )
    db.commit()
    db.refresh(plan)
    return schemas.TraineeDayPlanResponse(
        message=f"Day plan {payload.decision.value.lower()} successfully", day_plan=plan
    )


@trainee_router.put("/{plan_id}/eod-review", response_model=schemas.TraineeDayPlanResponse)
def review_eod_update(
    plan_id: str,
    payload: schemas.ReviewRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    plan = services.review_eod_update(
        db,
        plan_id=plan_id,
        reviewer=current_user,
        decision=payload.decision,
        comments=payload.comments,
    )
    db.commit()
    db.refresh(plan)
    return schemas.TraineeDayPlanResponse(
        message=f"EOD update {payload.decision.value.lower()} successfully", day_plan=plan
    )


@trainee_router.delete("/{plan_id}", response_model=schemas.MessageResponse)
def delete_trainee_day_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINEE)),
):
    services.delete_trainee_day_plan(db, plan_id=plan_id, actor=current_user)
    db.commit()
    return schemas.MessageResponse(message="Day plan deleted successfully")


# ---------------------------------------------------------------------------
# /dayplans
# ---------------------------------------------------------------------------


@trainer_router.post("", response_model=schemas.DayPlanResponse, status_code=status.HTTP_201_CREATED)
def create_day_plan(
    payload: schemas.DayPlanCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    plan = services.create_day_plan(
        db,
        trainer=current_user,
        title=payload.title,
        description=payload.description,
        plan_date=payload.plan_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        tasks=[task.model_dump(mode="json") for task in payload.tasks],
        audience_ids=payload.audience_ids,
        notes=payload.notes,
    )
    db.commit()
    db.refresh(plan)
    return schemas.DayPlanResponse(message="Day plan created successfully", day_plan=plan)


@trainer_router.get("", response_model=schemas.DayPlanListResponse)
def list_day_plans(
    status_filter: Optional[models.DayPlanStatus] = Query(None, alias="status"),
    start: Optional[date] = None,
    end: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    rows, total = services.list_day_plans(
        db,
        actor=current_user,
        status=status_filter,
        start=start,
        end=end,
        page=page,
        limit=limit,
    )
    return schemas.DayPlanListResponse(
        day_plans=rows, total=total, total_pages=_pages(total, limit), current_page=page
    )


@trainer_router.get("/{plan_id}", response_model=schemas.DayPlanRead)
def get_day_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.get_day_plan(db, plan_id=plan_id, actor=current_user)


@trainer_router.put("/{plan_id}", response_model=schemas.DayPlanResponse)
def update_day_plan(
    plan_id: str,
    payload: schemas.DayPlanUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    patch = payload.model_dump(exclude_unset=True)
    if payload.tasks is not None:
        patch["tasks"] = [task.model_dump(mode="json") for task in payload.tasks]
    plan = services.update_day_plan(db, plan_id=plan_id, trainer=current_user, patch=patch)
    db.commit()
    db.refresh(plan)
    return schemas.DayPlanResponse(message="Day plan updated successfully", day_plan=plan)


@trainer_router.put("/{plan_id}/publish", response_model=schemas.DayPlanResponse)
def publish_day_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    plan = services.publish_day_plan(db, plan_id=plan_id, trainer=current_user)
    db.commit()
    db.refresh(plan)
    return schemas.DayPlanResponse(message="Day plan published successfully", day_plan=plan)


@trainer_router.put("/{plan_id}/complete", response_model=schemas.DayPlanResponse)
def complete_day_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    plan = services.complete_day_plan(db, plan_id=plan_id, trainer=current_user)
    db.commit()
    db.refresh(plan)
    return schemas.DayPlanResponse(message="Day plan completed successfully", day_plan=plan)


@trainer_router.put("/{plan_id}/tasks/{task_index}", response_model=schemas.TaskStatusResponse)
def update_task_status(
    plan_id: str,
    task_index: int,
    payload: schemas.TaskStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINEE)),
):
    task = services.update_task_status(
        db,
        plan_id=plan_id,
        trainee=current_user,
        task_index=task_index,
        status=payload.status,
    )
    db.commit()
    return schemas.TaskStatusResponse(message="Task status updated successfully", task=task)


@trainer_router.delete("/{plan_id}", response_model=schemas.MessageResponse)
def delete_day_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.TRAINER)),
):
    services.delete_day_plan(db, plan_id=plan_id, trainer=current_user)
    db.commit()
    return schemas.MessageResponse(message="Day plan deleted successfully")
