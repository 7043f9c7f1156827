from __future__ import annotations

from traindb.apps.accounts import models as account_models
from traindb.jobs import assignment_sync_runner

Role = account_models.AccountRole


def test_runner_repairs_drift_and_commits(monkeypatch, db_session):
    trainer = account_models.User(
        name="Trainer One", email="trainer.one@example.com", hashed_password="hash", role=Role.TRAINER,
        is_active=True, assigned_trainee_ids=[],
    )
    db_session.add(trainer)
    db_session.flush()
    trainee = account_models.User(
        name="Trainee One", email="trainee.one@example.com", hashed_password="hash", role=Role.TRAINEE,
        is_active=True, assigned_trainer_id=trainer.id, assigned_trainee_ids=[],
    )
    db_session.add(trainee)
    db_session.commit()

    monkeypatch.setattr(assignment_sync_runner, "WriteSessionLocal", lambda: db_session)

    summary = assignment_sync_runner.run()

    assert summary["assignments"] == 0
    assert summary["stale_links_cleared"] == 1
    reloaded = db_session.get(account_models.User, trainee.id)
    assert reloaded.assigned_trainer_id is None
