from __future__ import annotations

from datetime import timedelta

import bcrypt
import pytest
from fastapi import HTTPException

from arsipdb import security
from arsipdb.apps.accounts import models as account_models


def _user(db, username="petugas", *, role=account_models.UserRole.STAFF, status=account_models.UserStatus.ACTIVE):
    user = account_models.User(
        username=username,
        name=username.title(),
        email=f"{username}@arsip.go.id",
        hashed_password=security.get_password_hash("Rahasia123"),
        role=role,
        status=status,
    )
    db.add(user)
    db.commit()
    return user


def test_argon2_and_legacy_bcrypt_hashes_verify():
    hashed = security.get_password_hash("Rahasia123")
    assert hashed.startswith("$argon2")
    assert security.verify_password("Rahasia123", hashed)
    assert not security.verify_password("salah", hashed)

    legacy = bcrypt.hashpw(b"Lama123", bcrypt.gensalt(rounds=4)).decode()
    assert security.verify_password("Lama123", legacy)
    assert not security.verify_password("Lama124", legacy)

    assert not security.verify_password("x", "plaintext")
    assert not security.verify_password("", hashed)


def test_token_round_trip_and_expiry():
    token = security.create_access_token("user-1")
    assert security.decode_access_token(token) == "user-1"

    expired = security.create_access_token("user-1", expires_delta=timedelta(seconds=-5))
    assert security.decode_access_token(expired) is None
    assert security.decode_access_token("not-a-token") is None


def test_current_user_resolution(db_session):
    active = _user(db_session)
    inactive = _user(db_session, "mantan", status=account_models.UserStatus.INACTIVE)

    token = security.create_access_token(active.id)
    assert security.get_current_user(token=token, db=db_session).id == active.id

    with pytest.raises(HTTPException) as exc:
        security.get_current_user(token=None, db=db_session)
    assert exc.value.status_code == 401

    with pytest.raises(HTTPException) as exc:
        security.get_current_user(token=security.create_access_token("missing"), db=db_session)
    assert exc.value.status_code == 401

    with pytest.raises(HTTPException) as exc:
        security.get_current_active_user(current_user=inactive)
    assert exc.value.status_code == 401

    assert security.get_active_user(db_session, inactive.id) is None
    assert security.get_active_user(db_session, active.id).id == active.id


def test_role_checks(db_session):
    staff = _user(db_session)
    admin = _user(db_session, "kepala", role=account_models.UserRole.ADMINISTRATOR)

    assert security.require_admin(current_user=admin) is admin
    with pytest.raises(HTTPException) as exc:
        security.require_admin(current_user=staff)
    assert exc.value.status_code == 403
