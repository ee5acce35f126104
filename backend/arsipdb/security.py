"""
Authentication for arsipdb.

Bearer tokens are issued by the identity service in front of this API.
Here they are only verified: the ``sub`` claim names a row in ``users``,
and that user must be ACTIVE to act. Passwords set by administrators are
hashed with Argon2id; bcrypt hashes carried over from the old system still
verify.
"""

from __future__ import annotations

import os
from datetime import timedelta
from typing import Optional

import bcrypt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from arsipdb.apps.accounts.models import User, UserRole, UserStatus
from arsipdb.database import get_db
from arsipdb.utils.dates import utcnow

SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# tokenUrl only feeds the OpenAPI docs; login is not served here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=os.getenv("AUTH_TOKEN_URL", "/auth/login"), auto_error=False)

_hasher = PasswordHasher(
    time_cost=int(os.getenv("ARGON2_TIME_COST", "3")),
    memory_cost=int(os.getenv("ARGON2_MEMORY_COST", "65536")),
    parallelism=int(os.getenv("ARGON2_PARALLELISM", "2")),
)

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def get_password_hash(password: str) -> str:
    return _hasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not hashed_password:
        return False
    if hashed_password.startswith("$argon2"):
        try:
            return _hasher.verify(hashed_password, plain_password)
        except (VerificationError, InvalidHash):
            return False
    if hashed_password.startswith(_BCRYPT_PREFIXES):
        try:
            return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
        except ValueError:
            return False
    return False


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    expires = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": str(subject), "exp": expires}, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """``sub`` of a valid, unexpired token; None otherwise."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    return str(subject) if subject is not None else None


def get_user_by_id(db: Session, user_id) -> Optional[User]:
    if user_id is None:
        return None
    return db.query(User).filter(User.id == str(user_id).strip()).first()


def get_active_user(db: Session, user_id) -> Optional[User]:
    """The user behind ``user_id`` if it may still act, else None."""
    user = get_user_by_id(db, user_id)
    if user is None or user.status != UserStatus.ACTIVE:
        return None
    return user


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    user_id = decode_access_token(token) if token else None
    user = get_user_by_id(db, user_id)
    if user is None:
        raise _unauthorized()
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    # a deactivated account is treated like a bad token
    if current_user.status != UserStatus.ACTIVE:
        raise _unauthorized()
    return current_user


def require_admin(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.role != UserRole.ADMINISTRATOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator privileges required",
        )
    return current_user
