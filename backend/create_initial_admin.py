# backend/create_initial_admin.py
"""Create the first ADMINISTRATOR and print a short-lived bearer token for it."""

import os
from datetime import timedelta

from arsipdb.database import SessionLocal
from arsipdb.apps.accounts import models
from arsipdb.security import create_access_token, get_password_hash

TOKEN_MINUTES = int(os.getenv("INITIAL_ADMIN_TOKEN_MINUTES", "30"))


def ensure_admin(db, *, username: str, email: str, password: str):
    """Return (user, created). An account already holding the username or email is left as it is."""
    username = username.strip().lower()
    email = email.strip().lower()
    existing = (
        db.query(models.User)
        .filter((models.User.username == username) | (models.User.email == email))
        .first()
    )
    if existing:
        return existing, False

    user = models.User(
        username=username,
        name="Administrator",
        email=email,
        role=models.UserRole.ADMINISTRATOR,
        status=models.UserStatus.ACTIVE,
        hashed_password=get_password_hash(password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, True


def bootstrap_token(user) -> str:
    """Bearer token for first-time setup; None unless the account is an active administrator."""
    if user.role != models.UserRole.ADMINISTRATOR or user.status != models.UserStatus.ACTIVE:
        return None
    return create_access_token(user.id, expires_delta=timedelta(minutes=TOKEN_MINUTES))


def main() -> None:
    db = SessionLocal()
    try:
        user, created = ensure_admin(
            db,
            username=os.getenv("INITIAL_ADMIN_USERNAME", "admin"),
            email=os.getenv("INITIAL_ADMIN_EMAIL", "admin@arsip.go.id"),
            password=os.getenv("INITIAL_ADMIN_PASSWORD", "ChangeMe123!"),
        )
        if created:
            print(f"[OK] Created admin user id={user.id} username={user.username}")
        else:
            print(f"[INFO] User already exists: id={user.id}, username={user.username}")

        # no login endpoint is served here
        token = bootstrap_token(user)
        if token:
            print(f"  bearer token (valid {TOKEN_MINUTES} min): {token}")
        else:
            print("  no token: the existing account is not an active administrator")
    finally:
        db.close()


if __name__ == "__main__":
    main()
