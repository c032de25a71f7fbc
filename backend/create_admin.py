"""One-time script to create (or reset) an admin user.

Usage:
    python -m backend.create_admin
"""

from __future__ import annotations

import getpass

from sqlalchemy import func

import backend.app.models.registry  # noqa: F401
from backend.app.core.database import SessionLocal
from backend.app.core.security import get_password_hash, validate_password_strength
from backend.app.models.user import User
from backend.app.services.user_management import create_user


def main() -> None:
    username = input("Username [admin]: ").strip() or "admin"
    password = getpass.getpass("Password: ")
    if not password:
        print("Error: password cannot be empty.")
        return
    pw_error = validate_password_strength(password)
    if pw_error:
        print(f"Error: {pw_error}")
        return

    with SessionLocal() as db:
        existing = db.query(User).filter(
            func.lower(User.username) == username.lower()
        ).first()
        if existing:
            existing.hashed_password = get_password_hash(password)
            existing.is_active = True
            existing.is_admin = True
            existing.is_approved = True
            db.commit()
            print("Admin user already exists, password reset.")
            print(f"  ID:       {existing.id}")
            print(f"  Username: {existing.username}")
            return

        user = create_user(
            db, username=username, password=password, is_admin=True, is_approved=True
        )
        db.commit()
        print("Admin user created.")
        print(f"  ID:       {user.id}")
        print(f"  Username: {username}")


if __name__ == "__main__":
    main()
