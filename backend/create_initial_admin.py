# backend/create_initial_admin.py

import os

from traindb.database import SessionLocal
from traindb.apps.accounts import schemas as account_schemas
from traindb.apps.accounts import services as account_services
from traindb.apps.accounts.models import AccountRole


def main() -> None:
    db = SessionLocal()
    try:
        email = os.getenv("INITIAL_ADMIN_EMAIL", "admin@example.com")
        password = os.getenv("INITIAL_ADMIN_PASSWORD", "ChangeMe123!")

        existing = account_services.get_user_by_email(db, email)
        if existing:
            print(f"[INFO] User already exists: id={existing.id}, email={existing.email}")
            return

        user = account_services.create_user(
            db,
            data=account_schemas.UserCreate(
                name=os.getenv("INITIAL_ADMIN_NAME", "Programme Admin"),
                email=email,
                role=AccountRole.ADMIN,
                password=password,
                employee_id="ADM001",
            ),
        )
        db.commit()

        print("[OK] Created admin user:")
        print(f"  id:      {user.id}")
        print(f"  email:   {user.email}")
        print(f"  role:    {user.role.value}")
        print(f"  login password: {password}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
