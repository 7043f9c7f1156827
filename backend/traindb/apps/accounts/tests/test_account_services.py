from __future__ import annotations

import bcrypt
from fastapi import HTTPException
from jose import jwt
import pytest

from traindb import security
from traindb.errors import ConflictError, ValidationError
from traindb.apps.accounts import models as account_models
from traindb.apps.accounts import schemas as account_schemas
from traindb.apps.accounts import services as account_services
from traindb.apps.accounts.router_public import login
from traindb.apps.assignments import services as assignment_services
from traindb.apps.notifications import models as notification_models

Role = account_models.AccountRole


def _new_user(db, name: str, role: Role, *, password: str = "Sup3rSecret!", **fields) -> account_models.User:
    user = account_services.create_user(
        db,
        data=account_schemas.UserCreate(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            role=role,
            password=password,
            **fields,
        ),
    )
    db.commit()
    return user


def test_create_user_hashes_password_and_rejects_duplicates(db_session):
    user = _new_user(db_session, "Trainee One", Role.TRAINEE, employee_id="emp-001")

    assert user.hashed_password.startswith("$argon2")
    assert user.employee_id == "EMP-001"
    assert user.assigned_trainee_ids == []
    assert user.author_id

    with pytest.raises(ConflictError):
        account_services.create_user(
            db_session,
            data=account_schemas.UserCreate(
                name="Copy", email="TRAINEE.ONE@example.com", role=Role.TRAINEE, password="Sup3rSecret!"
            ),
        )
    with pytest.raises(ConflictError):
        account_services.create_user(
            db_session,
            data=account_schemas.UserCreate(
                name="Other", email="other@example.com", role=Role.TRAINEE, password="Sup3rSecret!",
                employee_id="EMP-001",
            ),
        )


def test_update_user_refuses_relationship_fields(db_session):
    trainer = _new_user(db_session, "Trainer One", Role.TRAINER)
    trainee = _new_user(db_session, "Trainee One", Role.TRAINEE)

    with pytest.raises(ValidationError) as excinfo:
        account_services.update_user(db_session, trainee, {"assigned_trainer_id": trainer.id})
    assert excinfo.value.error == {"fields": ["assigned_trainer_id"]}
    assert trainee.assigned_trainer_id is None

    with pytest.raises(ValidationError):
        account_services.update_user(db_session, trainer, {"assigned_trainee_ids": [trainee.id]})

    updated = account_services.update_user(db_session, trainee, {"department": "Line Maintenance"})
    assert updated.department == "Line Maintenance"


def test_bound_users_keep_their_role_and_stay_active(db_session):
    master = _new_user(db_session, "Master One", Role.MASTER_TRAINER)
    trainer = _new_user(db_session, "Trainer One", Role.TRAINER)
    trainee = _new_user(db_session, "Trainee One", Role.TRAINEE)
    result = assignment_services.bind_trainees(
        db_session, trainer_id=trainer.id, trainee_ids=[trainee.id], requested_by=master
    )
    db_session.commit()

    with pytest.raises(ConflictError) as excinfo:
        account_services.update_user(db_session, trainer, {"role": Role.TRAINEE})
    assert excinfo.value.error["assigned_trainee_ids"] == [trainee.id]
    assert excinfo.value.error["assignment_ids"] == [result.assignment.id]
    assert trainer.role == Role.TRAINER

    with pytest.raises(ConflictError):
        account_services.update_user(db_session, trainee, {"is_active": False})
    with pytest.raises(ConflictError):
        account_services.deactivate_user(db_session, trainee)
    assert trainee.is_active is True
    assert trainee.assigned_trainer_id == trainer.id

    # Same role is not a change.
    account_services.update_user(db_session, trainer, {"role": Role.TRAINER, "department": "Ops"})
    assert trainer.department == "Ops"

    assignment_services.complete_assignment(
        db_session, assignment_id=result.assignment.id, requested_by=master
    )
    db_session.commit()

    account_services.update_user(db_session, trainer, {"role": Role.MASTER_TRAINER})
    account_services.deactivate_user(db_session, trainee)
    db_session.commit()
    assert trainer.role == Role.MASTER_TRAINER
    assert trainee.is_active is False


def test_find_users_by_ids_preserves_order_and_skips_unknown(db_session):
    a = _new_user(db_session, "Trainee A", Role.TRAINEE)
    b = _new_user(db_session, "Trainee B", Role.TRAINEE)

    found = account_services.find_users_by_ids(db_session, [b.id, "missing", a.id, b.id])
    assert [u.id for u in found] == [b.id, a.id]


def test_authenticate_and_token_claims(db_session):
    user = _new_user(db_session, "Trainer One", Role.TRAINER)

    with pytest.raises(account_services.AuthenticationError):
        account_services.authenticate_user(db_session, email=user.email, password="wrong-password")

    authed = account_services.authenticate_user(db_session, email="TRAINER.ONE@example.com", password="Sup3rSecret!")
    assert authed.last_login_at is not None

    token, expires_in = account_services.issue_access_token_for_user(authed)
    claims = jwt.decode(token, security.SECRET_KEY, algorithms=[security.JWT_ALGORITHM])
    assert claims["sub"] == user.id
    assert claims["role"] == "TRAINER"
    assert expires_in == security.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    account_services.deactivate_user(db_session, user)
    db_session.commit()
    with pytest.raises(account_services.AuthenticationError):
        account_services.authenticate_user(db_session, email=user.email, password="Sup3rSecret!")


def test_token_is_refused_once_the_role_changes(db_session):
    user = _new_user(db_session, "Trainer One", Role.TRAINER)
    token, _ = account_services.issue_access_token_for_user(user)

    assert security.get_current_user(token=token, db=db_session).id == user.id

    with pytest.raises(HTTPException) as excinfo:
        security.get_current_user(token="not-a-jwt", db=db_session)
    assert excinfo.value.status_code == 401

    account_services.update_user(db_session, user, {"role": Role.MASTER_TRAINER})
    db_session.commit()
    with pytest.raises(HTTPException) as excinfo:
        security.get_current_user(token=token, db=db_session)
    assert excinfo.value.status_code == 401


def test_login_announces_trainee_sign_in_to_master_trainers(db_session):
    master = _new_user(db_session, "Master One", Role.MASTER_TRAINER)
    trainee = _new_user(db_session, "Trainee One", Role.TRAINEE)

    result = login(
        account_schemas.LoginRequest(email=trainee.email, password="Sup3rSecret!"),
        db=db_session,
    )
    assert result.user.id == trainee.id

    notes = (
        db_session.query(notification_models.Notification)
        .filter(notification_models.Notification.recipient_id == master.id)
        .all()
    )
    assert [n.title for n in notes] == ["Trainee Signed In"]
    assert notes[0].message == "Trainee One (trainee) has signed in to the system"

    with pytest.raises(HTTPException) as excinfo:
        login(account_schemas.LoginRequest(email=trainee.email, password="nope"), db=db_session)
    assert excinfo.value.status_code == 401


def test_legacy_bcrypt_hashes_still_verify():
    legacy = bcrypt.hashpw(b"OldPassw0rd", bcrypt.gensalt()).decode("utf-8")
    assert security.verify_password("OldPassw0rd", legacy) is True
    assert security.verify_password("wrong", legacy) is False
