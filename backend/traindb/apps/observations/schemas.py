from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from .models import ObservationRating, ObservationStatus


class CultureRatings(BaseModel):
    communication: ObservationRating
    teamwork: ObservationRating
    discipline: ObservationRating
    attitude: ObservationRating
    notes: str = ""


class GroomingRatings(BaseModel):
    dress_code: ObservationRating
    neatness: ObservationRating
    punctuality: ObservationRating
    notes: str = ""


class ObservationCreate(BaseModel):
    trainee_id: str
    observation_date: date
    culture: CultureRatings
    grooming: GroomingRatings
    overall_rating: ObservationRating
    strengths: List[str] = []
    areas_for_improvement: List[str] = []
    recommendations: str = ""


class ObservationUpdate(BaseModel):
    culture: Optional[CultureRatings] = None
    grooming: Optional[GroomingRatings] = None
    overall_rating: Optional[ObservationRating] = None
    strengths: Optional[List[str]] = None
    areas_for_improvement: Optional[List[str]] = None
    recommendations: Optional[str] = None


class ObservationReviewRequest(BaseModel):
    master_trainer_notes: Optional[str] = None


class ObservationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    trainer_id: str
    trainee_id: str
    observation_date: date
    culture: Dict[str, Any] = {}
    grooming: Dict[str, Any] = {}
    overall_rating: ObservationRating
    strengths: List[str] = []
    areas_for_improvement: List[str] = []
    recommendations: str = ""
    status: ObservationStatus
    submitted_at: Optional[datetime] = None
    reviewed_by_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    master_trainer_notes: str = ""
    created_at: datetime
    updated_at: datetime


class ObservationResponse(BaseModel):
    success: bool = True
    message: str
    observation: ObservationRead


class ObservationListResponse(BaseModel):
    observations: List[ObservationRead]
    total: int
    total_pages: int
    current_page: int


class ObservationStats(BaseModel):
    total_observations: int
    submitted_observations: int
    reviewed_observations: int
    average_overall_rating: float
