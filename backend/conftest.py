from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.pop("NOTIFICATIONS_PROVIDER", None)

from traindb.database import Base  # noqa: E402
from traindb.apps.accounts import models as account_models  # noqa: E402
from traindb.apps.assignments import models as assignment_models  # noqa: E402
from traindb.apps.audit import models as audit_models  # noqa: E402
from traindb.apps.day_plans import models as day_plan_models  # noqa: E402
from traindb.apps.notifications import models as notification_models  # noqa: E402
from traindb.apps.observations import models as observation_models  # noqa: E402


def _enable_sqlite_savepoints(engine) -> None:
    # pysqlite opens transactions lazily; take over BEGIN so SAVEPOINT works.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.User.__table__,
            assignment_models.Assignment.__table__,
            audit_models.AuditEvent.__table__,
            notification_models.Notification.__table__,
            day_plan_models.TraineeDayPlan.__table__,
            day_plan_models.DayPlan.__table__,
            observation_models.Observation.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
