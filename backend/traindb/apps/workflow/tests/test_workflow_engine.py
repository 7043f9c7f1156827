from __future__ import annotations

import pytest

from traindb.errors import ValidationError
from traindb.apps.audit import models as audit_models
from traindb.apps.workflow import apply_transition, TransitionError
from traindb.apps.workflow.engine import is_allowed


def test_apply_transition_records_assignment_completion(db_session):
    apply_transition(
        db_session,
        actor_user_id=None,
        entity_type="assignment",
        entity_id="asg-1",
        from_state="ACTIVE",
        to_state="COMPLETED",
        before_obj={"trainee_ids": ["a", "b"]},
        after_obj={"end_date": "2026-01-31"},
    )
    db_session.commit()

    event = (
        db_session.query(audit_models.AuditEvent)
        .filter(
            audit_models.AuditEvent.entity_type == "assignment",
            audit_models.AuditEvent.action == "transition",
        )
        .first()
    )
    assert event is not None
    assert event.before == {"status": "ACTIVE", "trainee_ids": 2}
    assert event.after["status"] == "COMPLETED"


def test_apply_transition_rejects_unfilled_trainee_tasks(db_session):
    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            actor_user_id=None,
            entity_type="trainee_day_plan",
            entity_id="plan-1",
            from_state="DRAFT",
            to_state="IN_PROGRESS",
            before_obj=None,
            after_obj={
                "tasks": [
                    {"title": "Read docs", "description": " ", "time_allocation": "1h"},
                ]
            },
        )

    assert excinfo.value.code == "missing_requirements"
    assert {item["field"] for item in excinfo.value.detail} == {"tasks[0].description"}


def test_apply_transition_rejects_review_of_completed_plan(db_session):
    with pytest.raises(ValidationError) as excinfo:
        apply_transition(
            db_session,
            actor_user_id=None,
            entity_type="trainee_day_plan",
            entity_id="plan-2",
            from_state="COMPLETED",
            to_state="REJECTED",
            before_obj=None,
            after_obj={"reviewed_by_id": "t-1", "reviewed_at": "now"},
        )

    assert isinstance(excinfo.value, TransitionError)
    assert excinfo.value.code == "invalid_transition"
    assert excinfo.value.status_code == 400
    assert db_session.query(audit_models.AuditEvent).count() == 0


def test_eod_resubmission_requires_submitted_update(db_session):
    with pytest.raises(TransitionError):
        apply_transition(
            db_session,
            actor_user_id=None,
            entity_type="trainee_day_plan",
            entity_id="plan-3",
            from_state="REJECTED",
            to_state="PENDING",
            before_obj=None,
            after_obj={"eod_status": "REJECTED"},
        )

    assert is_allowed("trainee_day_plan", "REJECTED", "PENDING")
    assert is_allowed("trainee_day_plan", "PENDING", "PENDING")
    assert is_allowed("trainee_day_plan", "DRAFT", "PENDING")
    assert not is_allowed("trainee_day_plan", "COMPLETED", "PENDING")
    assert not is_allowed("day_plan", "COMPLETED", "DRAFT")
    assert not is_allowed("unknown", "A", "B")
