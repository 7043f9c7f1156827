from __future__ import annotations

from datetime import date

import pytest

from traindb.errors import ForbiddenError, ValidationError
from traindb.apps.accounts import models as account_models
from traindb.apps.assignments import services as assignment_services
from traindb.apps.day_plans import models as day_plan_models
from traindb.apps.day_plans import services as day_plan_services
from traindb.apps.notifications import models as notification_models
from traindb.apps.workflow import TransitionError

Role = account_models.AccountRole
DayPlanStatus = day_plan_models.DayPlanStatus


def _create_user(db, name: str, role: Role) -> account_models.User:
    user = account_models.User(
        name=name,
        email=f"{name.lower().replace(' ', '.')}@example.com",
        hashed_password="hash",
        role=role,
        is_active=True,
        assigned_trainee_ids=[],
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def crew(db_session):
    master = _create_user(db_session, "Master One", Role.MASTER_TRAINER)
    trainer = _create_user(db_session, "Trainer One", Role.TRAINER)
    a1 = _create_user(db_session, "Trainee One", Role.TRAINEE)
    a2 = _create_user(db_session, "Trainee Two", Role.TRAINEE)
    outsider = _create_user(db_session, "Trainee Three", Role.TRAINEE)
    assignment_services.bind_trainees(
        db_session, trainer_id=trainer.id, trainee_ids=[a1.id, a2.id], requested_by=master
    )
    db_session.commit()
    return {"master": master, "trainer": trainer, "a1": a1, "a2": a2, "outsider": outsider}


def _plan(db, crew, **overrides):
    kwargs = dict(
        trainer=crew["trainer"],
        title="Hangar induction",
        description="Walkthrough of line maintenance",
        plan_date=date(2026, 3, 2),
        start_time="08:00",
        end_time="16:00",
        tasks=[{"title": "Safety brief", "description": "PPE"}],
        audience_ids=[crew["a1"].id, crew["outsider"].id],
    )
    kwargs.update(overrides)
    plan = day_plan_services.create_day_plan(db, **kwargs)
    db.commit()
    return plan


def _day_plan_notes(db, user):
    return (
        db.query(notification_models.Notification)
        .filter(
            notification_models.Notification.recipient_id == user.id,
            notification_models.Notification.type == notification_models.NotificationType.DAY_PLAN,
        )
        .all()
    )


@pytest.mark.parametrize(
    "start_time, end_time",
    [("08:00", "15:00"), ("08:00", "16:30"), ("16:00", "08:00"), ("8am", "16:00"), ("25:00", "09:00")],
)
def test_day_plan_must_span_a_full_workday(db_session, crew, start_time, end_time):
    with pytest.raises(ValidationError):
        _plan(db_session, crew, start_time=start_time, end_time=end_time)


def test_create_filters_audience_to_assigned_trainees(db_session, crew):
    plan = _plan(db_session, crew)

    assert plan.status == DayPlanStatus.DRAFT
    assert plan.duration_hours == 8.0
    assert plan.audience_ids == [crew["a1"].id]
    assert plan.tasks[0]["status"] == "PENDING"
    assert _day_plan_notes(db_session, crew["a1"]) == []


def test_publish_notifies_audience_with_high_priority(db_session, crew):
    plan = _plan(db_session, crew)
    published = day_plan_services.publish_day_plan(db_session, plan_id=plan.id, trainer=crew["trainer"])
    db_session.commit()

    assert published.status == DayPlanStatus.PUBLISHED
    assert published.published_at is not None
    notes = _day_plan_notes(db_session, crew["a1"])
    assert len(notes) == 1
    assert notes[0].title == "Day Plan Published"
    assert notes[0].message == 'Day plan "Hangar induction" has been published and is now available'
    assert notes[0].priority == notification_models.NotificationPriority.HIGH
    assert _day_plan_notes(db_session, crew["a2"]) == []

    with pytest.raises(TransitionError):
        day_plan_services.publish_day_plan(db_session, plan_id=plan.id, trainer=crew["trainer"])


def test_publish_requires_tasks(db_session, crew):
    plan = _plan(db_session, crew, tasks=[])
    with pytest.raises(TransitionError) as excinfo:
        day_plan_services.publish_day_plan(db_session, plan_id=plan.id, trainer=crew["trainer"])
    assert excinfo.value.code == "missing_requirements"
    assert plan.status == DayPlanStatus.DRAFT


def test_update_after_publish_notifies_only_new_audience(db_session, crew):
    plan = _plan(db_session, crew)
    day_plan_services.publish_day_plan(db_session, plan_id=plan.id, trainer=crew["trainer"])
    db_session.commit()

    day_plan_services.update_day_plan(
        db_session,
        plan_id=plan.id,
        trainer=crew["trainer"],
        patch={"audience_ids": [crew["a1"].id, crew["a2"].id], "title": "Hangar induction II"},
    )
    db_session.commit()

    assert plan.audience_ids == [crew["a1"].id, crew["a2"].id]
    assert [n.title for n in _day_plan_notes(db_session, crew["a2"])] == ["Day Plan Updated"]
    assert len(_day_plan_notes(db_session, crew["a1"])) == 1

    with pytest.raises(ValidationError):
        day_plan_services.update_day_plan(
            db_session, plan_id=plan.id, trainer=crew["trainer"], patch={"end_time": "17:00"}
        )


def test_complete_then_frozen(db_session, crew):
    plan = _plan(db_session, crew)
    with pytest.raises(TransitionError):
        day_plan_services.complete_day_plan(db_session, plan_id=plan.id, trainer=crew["trainer"])

    day_plan_services.publish_day_plan(db_session, plan_id=plan.id, trainer=crew["trainer"])
    day_plan_services.complete_day_plan(db_session, plan_id=plan.id, trainer=crew["trainer"])
    db_session.commit()
    assert plan.status == DayPlanStatus.COMPLETED
    assert plan.completed_at is not None

    with pytest.raises(ValidationError):
        day_plan_services.update_day_plan(
            db_session, plan_id=plan.id, trainer=crew["trainer"], patch={"title": "Late edit"}
        )


def test_task_status_updates_by_audience_only(db_session, crew):
    plan = _plan(db_session, crew)

    task = day_plan_services.update_task_status(
        db_session,
        plan_id=plan.id,
        trainee=crew["a1"],
        task_index=0,
        status=day_plan_models.TaskStatus.COMPLETED,
    )
    db_session.commit()
    assert task["status"] == "COMPLETED"
    assert task["completed_at"] is not None
    assert plan.tasks[0]["status"] == "COMPLETED"

    with pytest.raises(ValidationError):
        day_plan_services.update_task_status(
            db_session,
            plan_id=plan.id,
            trainee=crew["a1"],
            task_index=3,
            status=day_plan_models.TaskStatus.COMPLETED,
        )
    with pytest.raises(ForbiddenError):
        day_plan_services.update_task_status(
            db_session,
            plan_id=plan.id,
            trainee=crew["a2"],
            task_index=0,
            status=day_plan_models.TaskStatus.IN_PROGRESS,
        )


def test_listing_and_ownership(db_session, crew):
    other_trainer = _create_user(db_session, "Trainer Two", Role.TRAINER)
    plan = _plan(db_session, crew)

    rows, total = day_plan_services.list_day_plans(db_session, actor=crew["trainer"])
    assert total == 1 and rows[0].id == plan.id
    rows, total = day_plan_services.list_day_plans(db_session, actor=other_trainer)
    assert total == 0
    rows, total = day_plan_services.list_day_plans(db_session, actor=crew["a1"])
    assert total == 1
    rows, total = day_plan_services.list_day_plans(db_session, actor=crew["a2"])
    assert total == 0
    rows, total = day_plan_services.list_day_plans(db_session, actor=crew["master"])
    assert total == 1

    with pytest.raises(ForbiddenError):
        day_plan_services.get_day_plan(db_session, plan_id=plan.id, actor=crew["a2"])
    with pytest.raises(ForbiddenError):
        day_plan_services.delete_day_plan(db_session, plan_id=plan.id, trainer=other_trainer)

    day_plan_services.delete_day_plan(db_session, plan_id=plan.id, trainer=crew["trainer"])
    db_session.commit()
    assert day_plan_services.list_day_plans(db_session, actor=crew["trainer"])[1] == 0
