# backend/traindb/__init__.py
"""
Import ORM models from each app so that Alembic and
Base.metadata.create_all() see every table.

The model classes live in traindb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models          # people + relationship fields
from .apps.assignments import models as assignments_models    # assignment ledger
from .apps.day_plans import models as day_plans_models        # trainee/trainer day plans
from .apps.observations import models as observations_models  # trainer observation reports
from .apps.notifications import models as notifications_models
from .apps.audit import models as audit_models

__all__ = [
    "accounts_models",
    "assignments_models",
    "day_plans_models",
    "observations_models",
    "notifications_models",
    "audit_models",
]
