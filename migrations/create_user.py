#!/usr/bin/env python3
"""Create or update a studio staff account.

Usage:
    python -m migrations.create_user owner@studio.example --name "Sam Owner" --admin
"""

import argparse
import getpass
import sys
from datetime import datetime

from src.shared.auth.auth import generate_user_id, hash_password
from src.shared.auth.database import init_db, SessionLocal, User

MIN_PASSWORD_LENGTH = 8


def upsert_user(db, email: str, password: str, full_name: str, is_admin: bool) -> User:
    """Create the account, or reset the password and role of an existing one."""
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(
            id=generate_user_id(),
            email=email,
            full_name=full_name,
            created_at=datetime.utcnow(),
        )
        db.add(user)
    user.password_hash = hash_password(password)
    user.full_name = full_name or user.full_name
    user.is_admin = is_admin
    user.is_active = True
    db.commit()
    db.refresh(user)
    return user


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("--name", default="", help="Full name shown in the admin UI")
    parser.add_argument("--admin", action="store_true", help="Grant the admin role")
    args = parser.parse_args(argv)

    password = getpass.getpass("Password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"ERROR: password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return 1
    if password != getpass.getpass("Repeat password: "):
        print("ERROR: passwords do not match.")
        return 1

    init_db()
    db = SessionLocal()
    try:
        user = upsert_user(db, args.email, password, args.name or args.email, args.admin)
    finally:
        db.close()

    role = "admin" if user.is_admin else "user"
    print(f"✓ {user.email} saved with role '{role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
