from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from traindb.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from traindb.apps.accounts import models as account_models
from traindb.apps.assignments import models as assignment_models
from traindb.apps.assignments import services as assignment_services
from traindb.apps.audit import models as audit_models
from traindb.apps.notifications import models as notification_models
from traindb.apps.notifications import service as notification_service

Role = account_models.AccountRole


def _create_user(db, name: str, role: Role, *, is_active: bool = True) -> account_models.User:
    user = account_models.User(
        name=name,
        email=f"{name.lower().replace(' ', '.')}@example.com",
        hashed_password="hash",
        role=role,
        is_active=is_active,
        status="pending",
        assigned_trainee_ids=[],
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def people(db_session):
    return {
        "master": _create_user(db_session, "Master One", Role.MASTER_TRAINER),
        "other_master": _create_user(db_session, "Master Two", Role.MASTER_TRAINER),
        "t1": _create_user(db_session, "Trainer One", Role.TRAINER),
        "t2": _create_user(db_session, "Trainer Two", Role.TRAINER),
        "a1": _create_user(db_session, "Trainee One", Role.TRAINEE),
        "a2": _create_user(db_session, "Trainee Two", Role.TRAINEE),
        "a3": _create_user(db_session, "Trainee Three", Role.TRAINEE),
    }


def _bind(db, people, trainer_key, trainee_keys):
    result = assignment_services.bind_trainees(
        db,
        trainer_id=people[trainer_key].id,
        trainee_ids=[people[k].id for k in trainee_keys],
        requested_by=people["master"],
    )
    db.commit()
    return result


def test_bind_then_extend_then_complete_scenario(db_session, people):
    t1, a1, a2 = people["t1"], people["a1"], people["a2"]

    first = _bind(db_session, people, "t1", ["a1"])
    assert first.is_update is False
    assert first.assignment.trainee_ids == [a1.id]
    assert first.total_trainees == 1
    assert first.assignment.total_trainees == 1
    assert t1.assigned_trainee_ids == [a1.id]
    assert a1.assigned_trainer_id == t1.id
    assert a1.status == "active"

    a1_updated_at = a1.updated_at
    second = _bind(db_session, people, "t1", ["a1", "a2"])
    assert second.is_update is True
    assert second.assignment.id == first.assignment.id
    assert second.assignment.trainee_ids == [a1.id, a2.id]
    assert second.total_trainees == 2
    assert second.newly_assigned == [a2.id]
    assert t1.assigned_trainee_ids == [a1.id, a2.id]
    assert a2.assigned_trainer_id == t1.id
    assert a1.assigned_trainer_id == t1.id
    assert a1.updated_at == a1_updated_at

    completed = assignment_services.complete_assignment(
        db_session,
        assignment_id=second.assignment.id,
        requested_by=people["master"],
    )
    db_session.commit()
    assert completed.status == assignment_models.AssignmentStatus.COMPLETED
    assert completed.end_date is not None
    assert a1.assigned_trainer_id is None
    assert a2.assigned_trainer_id is None
    assert t1.assigned_trainee_ids == []


def test_rebind_is_idempotent(db_session, people):
    _bind(db_session, people, "t1", ["a1", "a2"])
    again = _bind(db_session, people, "t1", ["a2", "a1", "a1"])

    assert again.newly_assigned == []
    assert again.total_trainees == 2
    assert again.assignment.trainee_ids == [people["a1"].id, people["a2"].id]
    assert people["t1"].assigned_trainee_ids == [people["a1"].id, people["a2"].id]
    active = (
        db_session.query(assignment_models.Assignment)
        .filter(assignment_models.Assignment.status == assignment_models.AssignmentStatus.ACTIVE)
        .count()
    )
    assert active == 1


def test_bind_notifies_trainer_and_new_trainees(db_session, people):
    _bind(db_session, people, "t1", ["a1"])
    _bind(db_session, people, "t1", ["a1", "a2"])

    trainer_notes = (
        db_session.query(notification_models.Notification)
        .filter(notification_models.Notification.recipient_id == people["t1"].id)
        .order_by(notification_models.Notification.created_at.asc())
        .all()
    )
    assert [n.title for n in trainer_notes] == ["New Trainee Assignment", "Trainee Assignment Updated"]
    assert trainer_notes[1].message == (
        "Your assignment has been updated. You now have 2 total trainees (1 newly assigned)"
    )
    assert all(n.priority == notification_models.NotificationPriority.HIGH for n in trainer_notes)
    assert all(n.requires_action for n in trainer_notes)

    a1_notes = (
        db_session.query(notification_models.Notification)
        .filter(notification_models.Notification.recipient_id == people["a1"].id)
        .all()
    )
    assert len(a1_notes) == 1
    assert a1_notes[0].message == "You have been assigned to trainer: Trainer One"

    actions = {e.action for e in db_session.query(audit_models.AuditEvent).all()}
    assert {"assignment_create", "assignment_update"} <= actions


@pytest.mark.parametrize(
    "trainer_key, trainee_keys",
    [
        ("a1", ["a2"]),
        ("t1", ["t2"]),
        ("t1", ["a1", "missing"]),
    ],
)
def test_bind_rejects_wrong_roles_and_unknown_ids(db_session, people, trainer_key, trainee_keys):
    trainer_id = people[trainer_key].id
    trainee_ids = [people[k].id if k in people else k for k in trainee_keys]

    with pytest.raises(ValidationError):
        assignment_services.bind_trainees(
            db_session,
            trainer_id=trainer_id,
            trainee_ids=trainee_ids,
            requested_by=people["master"],
        )
    assert db_session.query(assignment_models.Assignment).count() == 0
    assert people["a1"].assigned_trainer_id is None


def test_bind_rejects_inactive_trainee_and_empty_list(db_session, people):
    inactive = _create_user(db_session, "Trainee Gone", Role.TRAINEE, is_active=False)

    with pytest.raises(ValidationError) as excinfo:
        assignment_services.bind_trainees(
            db_session,
            trainer_id=people["t1"].id,
            trainee_ids=[people["a1"].id, inactive.id],
            requested_by=people["master"],
        )
    assert excinfo.value.error["inactive"] == [inactive.id]

    with pytest.raises(ValidationError):
        assignment_services.bind_trainees(
            db_session,
            trainer_id=people["t1"].id,
            trainee_ids=[],
            requested_by=people["master"],
        )
    assert db_session.query(assignment_models.Assignment).count() == 0


def test_bind_rejects_trainee_owned_by_another_trainer(db_session, people):
    _bind(db_session, people, "t1", ["a1"])

    with pytest.raises(ConflictError):
        _bind(db_session, people, "t2", ["a1", "a2"])

    assert people["a1"].assigned_trainer_id == people["t1"].id
    assert people["a2"].assigned_trainer_id is None
    assert people["t2"].assigned_trainee_ids == []


def test_one_active_assignment_per_trainer_is_enforced_by_storage(db_session, people):
    def _row(status):
        return assignment_models.Assignment(
            master_trainer_id=people["master"].id,
            trainer_id=people["t1"].id,
            trainee_ids=[],
            status=status,
            total_trainees=0,
            active_trainees=0,
        )

    db_session.add(_row(assignment_models.AssignmentStatus.COMPLETED))
    db_session.add(_row(assignment_models.AssignmentStatus.ACTIVE))
    db_session.commit()

    db_session.add(_row(assignment_models.AssignmentStatus.ACTIVE))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_notification_failure_never_blocks_bind_or_complete(db_session, people, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("notification sink down")

    monkeypatch.setattr(notification_service, "create_notification", boom)

    result = _bind(db_session, people, "t1", ["a1", "a2"])
    db_session.expire_all()
    assert people["a1"].assigned_trainer_id == people["t1"].id
    assert people["t1"].assigned_trainee_ids == [people["a1"].id, people["a2"].id]

    assignment_services.complete_assignment(
        db_session, assignment_id=result.assignment.id, requested_by=people["master"]
    )
    db_session.commit()
    db_session.expire_all()
    assert people["a1"].assigned_trainer_id is None
    assert people["t1"].assigned_trainee_ids == []
    assert db_session.query(notification_models.Notification).count() == 0


def test_complete_guards(db_session, people):
    with pytest.raises(NotFoundError):
        assignment_services.complete_assignment(
            db_session, assignment_id="missing", requested_by=people["master"]
        )

    result = _bind(db_session, people, "t1", ["a1"])
    with pytest.raises(ForbiddenError):
        assignment_services.complete_assignment(
            db_session, assignment_id=result.assignment.id, requested_by=people["other_master"]
        )
    assert people["a1"].assigned_trainer_id == people["t1"].id

    assignment_services.complete_assignment(
        db_session, assignment_id=result.assignment.id, requested_by=people["master"]
    )
    db_session.commit()
    with pytest.raises(ValidationError):
        assignment_services.complete_assignment(
            db_session, assignment_id=result.assignment.id, requested_by=people["master"]
        )


def test_new_assignment_after_completion(db_session, people):
    first = _bind(db_session, people, "t1", ["a1"])
    assignment_services.complete_assignment(
        db_session, assignment_id=first.assignment.id, requested_by=people["master"]
    )
    db_session.commit()

    second = _bind(db_session, people, "t1", ["a2"])
    assert second.is_update is False
    assert second.assignment.id != first.assignment.id
    assert people["t1"].assigned_trainee_ids == [people["a2"].id]


def test_sync_repairs_drift_and_is_idempotent(db_session, people):
    _bind(db_session, people, "t1", ["a1", "a2"])

    # Simulate edits made behind the reconciler's back.
    people["a1"].assigned_trainer_id = None
    people["t1"].assigned_trainee_ids = [people["a1"].id]
    people["t2"].assigned_trainee_ids = [people["a3"].id]
    people["a3"].assigned_trainer_id = people["t2"].id
    db_session.commit()

    summary = assignment_services.sync_assignments_to_users(db_session)
    db_session.commit()
    assert summary == {
        "assignments": 1,
        "trainers_updated": 1,
        "trainees_updated": 1,
        "stale_links_cleared": 2,
        "conflicting_trainees": [],
    }
    assert people["t1"].assigned_trainee_ids == [people["a1"].id, people["a2"].id]
    assert people["a1"].assigned_trainer_id == people["t1"].id
    assert people["t2"].assigned_trainee_ids == []
    assert people["a3"].assigned_trainer_id is None

    snapshot = {
        u.id: (u.assigned_trainer_id, list(u.assigned_trainee_ids or []))
        for u in db_session.query(account_models.User).all()
    }
    again = assignment_services.sync_assignments_to_users(db_session)
    db_session.commit()
    assert again["trainers_updated"] == 0
    assert again["trainees_updated"] == 0
    assert again["stale_links_cleared"] == 0
    assert snapshot == {
        u.id: (u.assigned_trainer_id, list(u.assigned_trainee_ids or []))
        for u in db_session.query(account_models.User).all()
    }
    assert db_session.query(assignment_models.Assignment).count() == 1


def test_sync_unlinks_trainee_claimed_by_two_active_rows(db_session, people):
    _bind(db_session, people, "t1", ["a1", "a2"])
    # A second ACTIVE row that also lists a1, written outside the reconciler.
    db_session.add(
        assignment_models.Assignment(
            master_trainer_id=people["master"].id,
            trainer_id=people["t2"].id,
            trainee_ids=[people["a1"].id, people["a3"].id],
        )
    )
    db_session.commit()

    summary = assignment_services.sync_assignments_to_users(db_session)
    db_session.commit()

    assert summary["conflicting_trainees"] == [people["a1"].id]
    assert people["a1"].assigned_trainer_id is None
    assert people["t1"].assigned_trainee_ids == [people["a2"].id]
    assert people["t2"].assigned_trainee_ids == [people["a3"].id]
    assert people["a2"].assigned_trainer_id == people["t1"].id
    assert people["a3"].assigned_trainer_id == people["t2"].id

    # No trainer lists a trainee that points elsewhere, and vice versa.
    users = db_session.query(account_models.User).all()
    for user in users:
        for trainee_id in user.assigned_trainee_ids or []:
            assert db_session.get(account_models.User, trainee_id).assigned_trainer_id == user.id
        if user.assigned_trainer_id:
            trainer = db_session.get(account_models.User, user.assigned_trainer_id)
            assert user.id in trainer.assigned_trainee_ids

    again = assignment_services.sync_assignments_to_users(db_session)
    assert again["conflicting_trainees"] == [people["a1"].id]
    assert again["trainers_updated"] == 0
    assert again["stale_links_cleared"] == 0


def test_update_assignment_replaces_trainee_set(db_session, people):
    result = _bind(db_session, people, "t1", ["a1", "a2"])

    updated = assignment_services.update_assignment(
        db_session,
        assignment_id=result.assignment.id,
        requested_by=people["master"],
        trainee_ids=[people["a2"].id, people["a3"].id],
        notes="Week two cohort",
    )
    db_session.commit()

    assert updated.trainee_ids == [people["a2"].id, people["a3"].id]
    assert updated.total_trainees == 2
    assert updated.notes == "Week two cohort"
    assert updated.modified_by_id == people["master"].id
    assert people["a1"].assigned_trainer_id is None
    assert people["a3"].assigned_trainer_id == people["t1"].id
    assert people["t1"].assigned_trainee_ids == [people["a2"].id, people["a3"].id]

    with pytest.raises(ForbiddenError):
        assignment_services.update_assignment(
            db_session,
            assignment_id=result.assignment.id,
            requested_by=people["other_master"],
            notes="nope",
        )
    with pytest.raises(ValidationError):
        assignment_services.update_assignment(
            db_session,
            assignment_id=result.assignment.id,
            requested_by=people["master"],
            trainee_ids=[],
        )


def test_acknowledge_only_by_bound_trainer(db_session, people):
    result = _bind(db_session, people, "t1", ["a1"])

    with pytest.raises(ForbiddenError):
        assignment_services.acknowledge_assignment(
            db_session, assignment_id=result.assignment.id, trainer=people["t2"]
        )

    acknowledged = assignment_services.acknowledge_assignment(
        db_session, assignment_id=result.assignment.id, trainer=people["t1"]
    )
    db_session.commit()
    assert acknowledged.is_acknowledged is True
    assert acknowledged.acknowledged_at is not None


def test_views_and_availability_lists(db_session, people):
    _bind(db_session, people, "t1", ["a1", "a2"])

    trainer_view = assignment_services.get_trainer_view(db_session, people["t1"])
    assert [t.id for t in trainer_view["trainees"]] == [people["a1"].id, people["a2"].id]
    assert trainer_view["total_trainees"] == 2

    trainee_view = assignment_services.get_trainee_view(db_session, people["a1"])
    assert trainee_view["has_trainer"] is True
    assert trainee_view["trainer"].id == people["t1"].id
    assert assignment_services.get_trainee_view(db_session, people["a3"])["has_trainer"] is False

    assert [t.id for t in assignment_services.list_available_trainers(db_session)] == [people["t2"].id]
    assert [t.id for t in assignment_services.list_unassigned_trainees(db_session)] == [people["a3"].id]


def test_list_assignments_scopes_master_trainers(db_session, people):
    _bind(db_session, people, "t1", ["a1"])
    boa = _create_user(db_session, "Back Office", Role.BOA)

    own, total = assignment_services.list_assignments(db_session, current_user=people["master"])
    assert total == 1 and len(own) == 1

    _, other_total = assignment_services.list_assignments(
        db_session, current_user=people["other_master"]
    )
    assert other_total == 0

    _, boa_total = assignment_services.list_assignments(db_session, current_user=boa)
    assert boa_total == 1

    _, by_trainer = assignment_services.list_assignments(
        db_session, current_user=people["other_master"], trainer_id=people["t1"].id
    )
    assert by_trainer == 1
