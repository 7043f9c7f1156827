"""
Domain errors raised by traindb services.

Services raise these before mutating anything; `traindb.main` renders them
as `{"success": false, "message": ..., "error": ...}` with the matching
HTTP status.
"""

from __future__ import annotations

from typing import Any, Optional


class TrainingDomainError(Exception):
    status_code = 500

    def __init__(self, message: str, *, error: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.error = error

    def to_payload(self) -> dict:
        payload: dict = {"success": False, "message": self.message}
        if self.error is not None:
            payload["error"] = self.error
        return payload


class ValidationError(TrainingDomainError):
    """Bad, missing or wrong-role ids, malformed input, illegal transition."""

    status_code = 400


class ForbiddenError(TrainingDomainError):
    """Actor lacks authority over the target entity."""

    status_code = 403


class NotFoundError(TrainingDomainError):
    status_code = 404


class ConflictError(TrainingDomainError):
    """Duplicate active binding, duplicate day plan for a date, duplicate user."""

    status_code = 409
