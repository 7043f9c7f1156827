"""Assignment ledger -> user fields reconciliation runner.

Safe to run from cron: the sync is idempotent and repairs any drift left by
a partially applied bind or completion.
"""

from __future__ import annotations

import logging

from traindb.database import WriteSessionLocal
from traindb.apps.assignments import services as assignment_services

logger = logging.getLogger(__name__)


def run() -> dict:
    db = WriteSessionLocal()
    try:
        summary = assignment_services.sync_assignments_to_users(db)
        db.commit()
        logger.info("Assignment sync completed", extra=summary)
        return summary
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    result = run()
    print("Assignment sync completed:", result)
