"""Password hashing and bearer tokens for marketplace users.

Tokens identify a user by email (``sub``) and carry the role they were
issued for; the role claim is informational and never replaces the
database lookup done by ``get_current_user``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from vconn.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unparseable stored hash (e.g. a seeded placeholder).
        return False


def issue_token(
    email: str, *, role: Optional[str] = None, ttl_minutes: Optional[int] = None
) -> str:
    issued_at = datetime.now(timezone.utc)
    ttl = timedelta(minutes=ttl_minutes or settings.access_token_expire_minutes)
    claims: dict[str, Any] = {"sub": email, "iat": issued_at, "exp": issued_at + ttl}
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def read_token(token: str) -> Optional[dict[str, Any]]:
    """Verified claims, or None for a malformed, forged or expired token."""

    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None


def token_subject(token: str) -> Optional[str]:
    claims = read_token(token)
    subject = (claims or {}).get("sub")
    return str(subject) if subject else None
