from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from . import config

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    role: str
    email: str
    expires_at: datetime


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user_id: str, role: str, email: str, expires_minutes: int | None = None) -> str:
    """
    HS256 token carrying the user id (``sub``), role and email.
    iat/exp are UTC epoch seconds.
    """
    now = datetime.now(timezone.utc)
    ttl = config.ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes

    payload: dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALG)


def read_claims(token: str) -> TokenClaims | None:
    """None for a bad signature, an expired token or missing claims."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except JWTError:
        return None

    sub = payload.get("sub")
    if not sub:
        return None
    return TokenClaims(
        user_id=sub,
        role=str(payload.get("role") or ""),
        email=str(payload.get("email") or ""),
        expires_at=datetime.fromtimestamp(int(payload.get("exp", 0)), tz=timezone.utc),
    )
