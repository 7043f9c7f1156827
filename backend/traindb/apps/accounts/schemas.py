# backend/traindb/apps/accounts/schemas.py

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import AccountRole


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class UserBase(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    role: AccountRole

    employee_id: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    joining_date: Optional[date] = None


class UserCreate(UserBase):
    password: str = Field(min_length=8)
    status: str = "active"


class UserUpdate(BaseModel):
    """
    Fields an administrator may change directly.

    Trainer/trainee links are deliberately absent: they are owned by the
    assignments app.
    """

    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[AccountRole] = None
    employee_id: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    joining_date: Optional[date] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None


class UserSummary(BaseModel):
    """Compact person reference used inside assignment and day-plan payloads."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    author_id: str
    name: str
    email: str
    role: AccountRole
    employee_id: Optional[str] = None
    department: Optional[str] = None


class UserRead(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    author_id: str
    email: str
    is_active: bool
    status: str
    assigned_trainer_id: Optional[str] = None
    assigned_trainee_ids: List[str] = []
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserListResponse(BaseModel):
    users: List[UserRead]
    total: int


# ---------------------------------------------------------------------------
# AUTH
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead
