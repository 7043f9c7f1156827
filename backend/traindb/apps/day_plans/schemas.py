from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    DayPlanStatus,
    EodStatus,
    ReviewDecision,
    TaskStatus,
    TraineeDayPlanStatus,
)


class TraineeTask(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    title: str = ""
    description: str = ""
    time_allocation: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    remarks: str = ""


class TraineeDayPlanCreate(BaseModel):
    plan_date: date
    tasks: List[TraineeTask] = []
    checkboxes: Dict[str, Any] = {}
    submit: bool = True
    trainee_id: Optional[str] = None


class TraineeDayPlanUpdate(BaseModel):
    tasks: Optional[List[TraineeTask]] = None
    checkboxes: Optional[Dict[str, Any]] = None


class ReviewRequest(BaseModel):
    decision: ReviewDecision
    comments: Optional[str] = None


class EodTaskUpdate(BaseModel):
    task_index: int = Field(ge=0)
    status: TaskStatus
    remarks: Optional[str] = None


class EodUpdateRequest(BaseModel):
    plan_date: date
    tasks: List[EodTaskUpdate] = Field(min_length=1)
    overall_remarks: Optional[str] = None


class TraineeDayPlanRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    trainee_id: str
    plan_date: date
    tasks: List[Dict[str, Any]] = []
    checkboxes: Dict[str, Any] = {}
    status: TraineeDayPlanStatus
    submitted_at: Optional[datetime] = None
    created_by_id: Optional[str] = None
    created_by_role: str
    reviewed_by_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_comments: Optional[str] = None
    approved_by_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    eod_status: Optional[EodStatus] = None
    eod_submitted_at: Optional[datetime] = None
    eod_overall_remarks: Optional[str] = None
    eod_reviewed_by_id: Optional[str] = None
    eod_reviewed_at: Optional[datetime] = None
    eod_review_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TraineeDayPlanResponse(BaseModel):
    success: bool = True
    message: str
    day_plan: TraineeDayPlanRead


class TraineeDayPlanListResponse(BaseModel):
    day_plans: List[TraineeDayPlanRead]
    total: int
    total_pages: int
    current_page: int


class DayPlanTask(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    description: str = ""
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING


class DayPlanCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    plan_date: date
    start_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    end_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    tasks: List[DayPlanTask] = []
    audience_ids: List[str] = []
    notes: Optional[str] = None


class DayPlanUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    plan_date: Optional[date] = None
    start_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    end_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    tasks: Optional[List[DayPlanTask]] = None
    audience_ids: Optional[List[str]] = None
    notes: Optional[str] = None
    feedback: Optional[str] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class DayPlanRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    trainer_id: str
    title: str
    description: str
    plan_date: date
    start_time: str
    end_time: str
    duration_hours: float
    tasks: List[Dict[str, Any]] = []
    audience_ids: List[str] = []
    status: DayPlanStatus
    published_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: str = ""
    feedback: str = ""
    created_at: datetime
    updated_at: datetime


class DayPlanResponse(BaseModel):
    success: bool = True
    message: str
    day_plan: DayPlanRead


class DayPlanListResponse(BaseModel):
    day_plans: List[DayPlanRead]
    total: int
    total_pages: int
    current_page: int


class TaskStatusResponse(BaseModel):
    success: bool = True
    message: str
    task: Dict[str, Any]


class MessageResponse(BaseModel):
    success: bool = True
    message: str
