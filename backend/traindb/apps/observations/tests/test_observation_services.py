from __future__ import annotations

from datetime import date

import pytest

from traindb.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from traindb.apps.accounts import models as account_models
from traindb.apps.assignments import services as assignment_services
from traindb.apps.audit import models as audit_models
from traindb.apps.notifications import models as notification_models
from traindb.apps.observations import models as observation_models
from traindb.apps.observations import services as observation_services
from traindb.apps.workflow import TransitionError

Role = account_models.AccountRole
Rating = observation_models.ObservationRating
Status = observation_models.ObservationStatus

OBSERVED_ON = date(2026, 3, 4)


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
def cohort(db_session):
    master = _create_user(db_session, "Master One", Role.MASTER_TRAINER)
    trainer = _create_user(db_session, "Trainer One", Role.TRAINER)
    other_trainer = _create_user(db_session, "Trainer Two", Role.TRAINER)
    trainee = _create_user(db_session, "Trainee One", Role.TRAINEE)
    loner = _create_user(db_session, "Trainee Two", Role.TRAINEE)
    assignment_services.bind_trainees(
        db_session, trainer_id=trainer.id, trainee_ids=[trainee.id], requested_by=master
    )
    db_session.commit()
    return {
        "master": master,
        "trainer": trainer,
        "other_trainer": other_trainer,
        "trainee": trainee,
        "loner": loner,
    }


def _culture(**overrides):
    ratings = {
        "communication": Rating.GOOD,
        "teamwork": Rating.EXCELLENT,
        "discipline": Rating.GOOD,
        "attitude": Rating.AVERAGE,
        "notes": "",
    }
    ratings.update(overrides)
    return ratings


def _grooming(**overrides):
    ratings = {
        "dress_code": Rating.GOOD,
        "neatness": Rating.GOOD,
        "punctuality": Rating.NEEDS_IMPROVEMENT,
        "notes": "Late twice",
    }
    ratings.update(overrides)
    return ratings


def _record(db, trainer, trainee_ref, *, rating=Rating.GOOD, on=OBSERVED_ON, culture=None):
    observation = observation_services.create_observation(
        db,
        trainer=trainer,
        trainee_id=trainee_ref,
        observation_date=on,
        culture=culture or _culture(),
        grooming=_grooming(),
        overall_rating=rating,
        strengths=["Asks good questions"],
        areas_for_improvement=["Punctuality"],
    )
    db.commit()
    return observation


def _titles(db, user):
    return [
        n.title
        for n in db.query(notification_models.Notification)
        .filter(notification_models.Notification.recipient_id == user.id)
        .all()
    ]


def test_trainer_records_only_for_assigned_trainees(db_session, cohort):
    trainer = cohort["trainer"]
    observation = _record(db_session, trainer, cohort["trainee"].id)

    assert observation.status == Status.DRAFT
    assert observation.trainee_id == cohort["trainee"].id
    assert observation.culture["teamwork"] == "EXCELLENT"
    assert observation.grooming["punctuality"] == "NEEDS_IMPROVEMENT"
    assert "New Observation Recorded" not in _titles(db_session, cohort["trainee"])

    with pytest.raises(ForbiddenError):
        _record(db_session, trainer, cohort["loner"].id)
    with pytest.raises(ForbiddenError):
        _record(db_session, cohort["other_trainer"], cohort["trainee"].id)


def test_trainee_can_be_referenced_by_author_id(db_session, cohort):
    observation = _record(db_session, cohort["trainer"], cohort["trainee"].author_id)
    assert observation.trainee_id == cohort["trainee"].id


def test_duplicate_observation_for_same_day_conflicts(db_session, cohort):
    first = _record(db_session, cohort["trainer"], cohort["trainee"].id)

    with pytest.raises(ConflictError) as excinfo:
        _record(db_session, cohort["trainer"], cohort["trainee"].id)
    assert excinfo.value.error["observation_id"] == first.id

    later = _record(db_session, cohort["trainer"], cohort["trainee"].id, on=date(2026, 3, 5))
    assert later.id != first.id


def test_submit_notifies_trainee_and_master_trainers(db_session, cohort):
    trainer, trainee, master = cohort["trainer"], cohort["trainee"], cohort["master"]
    observation = _record(db_session, trainer, trainee.id)

    with pytest.raises(ForbiddenError):
        observation_services.submit_observation(
            db_session, observation_id=observation.id, trainer=cohort["other_trainer"]
        )

    submitted = observation_services.submit_observation(
        db_session, observation_id=observation.id, trainer=trainer
    )
    db_session.commit()

    assert submitted.status == Status.SUBMITTED
    assert submitted.submitted_at is not None
    assert "New Observation Recorded" in _titles(db_session, trainee)
    assert "Observation Report Submitted" in _titles(db_session, master)

    transitions = (
        db_session.query(audit_models.AuditEvent)
        .filter(audit_models.AuditEvent.entity_id == observation.id)
        .all()
    )
    assert [(e.before["status"], e.after["status"]) for e in transitions] == [("DRAFT", "SUBMITTED")]

    with pytest.raises(TransitionError):
        observation_services.submit_observation(
            db_session, observation_id=observation.id, trainer=trainer
        )


def test_submit_requires_every_rating(db_session, cohort):
    observation = _record(db_session, cohort["trainer"], cohort["trainee"].id, culture=_culture(attitude=""))

    with pytest.raises(TransitionError) as excinfo:
        observation_services.submit_observation(
            db_session, observation_id=observation.id, trainer=cohort["trainer"]
        )
    assert excinfo.value.code == "missing_requirements"
    assert [item["field"] for item in excinfo.value.detail] == ["culture.attitude"]
    assert observation.status == Status.DRAFT


def test_only_drafts_are_editable(db_session, cohort):
    trainer = cohort["trainer"]
    observation = _record(db_session, trainer, cohort["trainee"].id)

    updated = observation_services.update_observation(
        db_session,
        observation_id=observation.id,
        trainer=trainer,
        patch={"overall_rating": "EXCELLENT", "recommendations": "Ready for line work"},
    )
    assert updated.overall_rating == Rating.EXCELLENT
    assert updated.recommendations == "Ready for line work"

    with pytest.raises(ValidationError):
        observation_services.update_observation(
            db_session, observation_id=observation.id, trainer=trainer, patch={"trainee_id": "x"}
        )

    observation_services.submit_observation(db_session, observation_id=observation.id, trainer=trainer)
    db_session.commit()
    with pytest.raises(ValidationError):
        observation_services.update_observation(
            db_session, observation_id=observation.id, trainer=trainer, patch={"recommendations": "late"}
        )


def test_master_trainer_reviews_submitted_observation(db_session, cohort):
    trainer, master = cohort["trainer"], cohort["master"]
    observation = _record(db_session, trainer, cohort["trainee"].id)

    with pytest.raises(TransitionError):
        observation_services.review_observation(
            db_session, observation_id=observation.id, reviewer=master
        )

    observation_services.submit_observation(db_session, observation_id=observation.id, trainer=trainer)
    with pytest.raises(ForbiddenError):
        observation_services.review_observation(
            db_session, observation_id=observation.id, reviewer=trainer
        )

    reviewed = observation_services.review_observation(
        db_session, observation_id=observation.id, reviewer=master, master_trainer_notes="Agreed"
    )
    db_session.commit()
    assert reviewed.status == Status.REVIEWED
    assert reviewed.reviewed_by_id == master.id
    assert reviewed.master_trainer_notes == "Agreed"
    assert "Observation Reviewed" in _titles(db_session, trainer)


def test_visibility_is_scoped_by_role(db_session, cohort):
    trainer, trainee, master = cohort["trainer"], cohort["trainee"], cohort["master"]
    draft = _record(db_session, trainer, trainee.id)
    shared = _record(db_session, trainer, trainee.id, on=date(2026, 3, 5))
    observation_services.submit_observation(db_session, observation_id=shared.id, trainer=trainer)
    db_session.commit()

    own, total = observation_services.list_observations(db_session, actor=trainer)
    assert total == 2

    mine, total = observation_services.list_observations(db_session, actor=trainee)
    assert total == 1 and mine[0].id == shared.id
    with pytest.raises(NotFoundError):
        observation_services.get_observation(db_session, observation_id=draft.id, actor=trainee)
    with pytest.raises(ForbiddenError):
        observation_services.get_observation(db_session, observation_id=shared.id, actor=cohort["loner"])
    with pytest.raises(ForbiddenError):
        observation_services.get_observation(
            db_session, observation_id=shared.id, actor=cohort["other_trainer"]
        )

    everything, total = observation_services.list_observations(
        db_session, actor=master, status=Status.SUBMITTED
    )
    assert total == 1 and everything[0].id == shared.id

    nothing, total = observation_services.list_observations(db_session, actor=cohort["other_trainer"])
    assert (list(nothing), total) == ([], 0)


def test_stats_average_the_overall_rating(db_session, cohort):
    trainer = cohort["trainer"]
    _record(db_session, trainer, cohort["trainee"].id, rating=Rating.EXCELLENT)
    second = _record(db_session, trainer, cohort["trainee"].id, rating=Rating.AVERAGE, on=date(2026, 3, 5))
    observation_services.submit_observation(db_session, observation_id=second.id, trainer=trainer)
    db_session.commit()

    stats = observation_services.observation_stats(db_session, actor=trainer)
    assert stats == {
        "total_observations": 2,
        "submitted_observations": 1,
        "reviewed_observations": 0,
        "average_overall_rating": 3.0,
    }

    empty = observation_services.observation_stats(db_session, actor=cohort["other_trainer"])
    assert empty["total_observations"] == 0
    assert empty["average_overall_rating"] == 0.0
