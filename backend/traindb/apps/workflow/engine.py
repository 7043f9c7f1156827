from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from traindb.errors import ValidationError
from traindb.apps.audit import services as audit_services

from .registry import WORKFLOWS


class TransitionError(ValidationError):
    """Illegal status change or unmet transition requirement."""

    def __init__(self, code: str, detail: List[Dict[str, str]]) -> None:
        message = detail[0]["reason"] if detail else code
        super().__init__(message, error={"code": code, "detail": detail})
        self.code = code
        self.detail = detail


def is_allowed(entity_type: str, from_state: str, to_state: str) -> bool:
    transitions = WORKFLOWS.get(entity_type, {}).get("transitions", {})
    return to_state in transitions.get(from_state, {})


def apply_transition(
    db: Session,
    *,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    from_state: str,
    to_state: str,
    before_obj: Any,
    after_obj: Any,
    correlation_id: Optional[str] = None,
    critical: bool = False,
) -> None:
    """
    Check a status change against the registry and record it.

    Raises TransitionError before anything is written; callers mutate the
    entity only after this returns.
    """
    workflow = WORKFLOWS.get(entity_type)
    if not workflow:
        raise TransitionError(
            code="invalid_transition",
            detail=[{"field": "entity_type", "reason": f"No workflow registered for {entity_type}"}],
        )

    transitions = workflow.get("transitions", {})
    allowed = transitions.get(from_state, {})
    guards = allowed.get(to_state)

    if guards is None:
        raise TransitionError(
            code="invalid_transition",
            detail=[{"field": "status", "reason": f"Cannot transition from {from_state} to {to_state}"}],
        )

    failures: List[Dict[str, str]] = []
    for guard in guards:
        failures.extend(
            guard(
                db,
                before_obj=before_obj,
                after_obj=after_obj,
                from_state=from_state,
                to_state=to_state,
            )
        )

    if failures:
        raise TransitionError(code="missing_requirements", detail=failures)

    before_payload: Dict[str, Any] = {"status": from_state}
    after_payload: Dict[str, Any] = {"status": to_state}
    if isinstance(before_obj, dict):
        before_payload.update(_jsonable(before_obj))
    if isinstance(after_obj, dict):
        after_payload.update(_jsonable(after_obj))

    audit_services.log_event(
        db,
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action="transition",
        before=before_payload,
        after=after_payload,
        correlation_id=correlation_id,
        metadata={"workflow": entity_type},
        critical=critical,
    )


def _jsonable(obj: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in obj.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            out[key] = value
        elif isinstance(value, (list, tuple)):
            out[key] = len(value)
        else:
            out[key] = str(value)
    return out
