# backend/traindb/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- The person directory (trainees, trainers, master trainers, BOA, admins)
- The two denormalised relationship fields on each person
  (`assigned_trainer_id` / `assigned_trainee_ids`), which only the
  assignments reconciler writes
- Public auth endpoints (login, current user)
- Admin endpoints (create, list, update, deactivate users)
"""

from . import models  # noqa: F401

__all__ = ["models"]
