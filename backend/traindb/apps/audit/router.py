from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from traindb.security import require_roles
from traindb.apps.accounts.models import AccountRole, User
from traindb.database import get_db

from . import schemas, services


router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/", response_model=List[schemas.AuditEventRead])
def list_audit_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 200,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.BOA, AccountRole.ADMIN)),
):
    return services.list_audit_events(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        start=start,
        end=end,
        limit=max(1, min(limit, 1000)),
    )
