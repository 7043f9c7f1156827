from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from traindb.apps.accounts.schemas import UserSummary

from .models import AssignmentStatus


class AssignmentCreate(BaseModel):
    trainer_id: str
    trainee_ids: List[str] = Field(min_length=1)
    effective_date: Optional[datetime] = None
    notes: Optional[str] = None
    instructions: Optional[str] = None


class AssignmentUpdate(BaseModel):
    trainee_ids: Optional[List[str]] = None
    notes: Optional[str] = None
    instructions: Optional[str] = None
    effective_date: Optional[datetime] = None


class AssignmentComplete(BaseModel):
    end_date: Optional[datetime] = None


class AssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    master_trainer_id: str
    trainer_id: str
    trainee_ids: List[str] = []
    status: AssignmentStatus
    assignment_date: datetime
    effective_date: datetime
    end_date: Optional[datetime] = None
    notes: str = ""
    instructions: str = ""
    is_acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    total_trainees: int
    active_trainees: int
    created_by_id: Optional[str] = None
    modified_by_id: Optional[str] = None
    modified_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BindResponse(BaseModel):
    success: bool = True
    message: str
    assignment: AssignmentRead
    is_update: bool
    total_trainees: int
    newly_assigned: List[str]


class AssignmentMutationResponse(BaseModel):
    success: bool = True
    message: str
    assignment: AssignmentRead


class AssignmentListResponse(BaseModel):
    assignments: List[AssignmentRead]
    total: int
    total_pages: int
    current_page: int


class SyncSummary(BaseModel):
    success: bool = True
    message: str
    assignments: int
    trainers_updated: int
    trainees_updated: int
    stale_links_cleared: int
    conflicting_trainees: List[str] = []


class TrainerView(BaseModel):
    trainer: UserSummary
    trainees: List[UserSummary]
    total_trainees: int
    active_trainees: int


class TraineeView(BaseModel):
    trainee: UserSummary
    trainer: Optional[UserSummary] = None
    has_trainer: bool
