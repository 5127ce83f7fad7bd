# src/SKMS/auth/tokens.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from SKMS.core.config import settings
from SKMS.exceptions import Unauthorized


def _now():
    return datetime.now(timezone.utc)


def create_access_token(user_id: str, *, expires_minutes: int | None = None) -> str:
    minutes = settings.JWT_EXPIRES_MINUTES if expires_minutes is None else expires_minutes
    issued = _now()
    claims = {
        "sub": user_id,
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(minutes=minutes)).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise Unauthorized("Your token has expired. Please log in again.", cause=exc) from exc
    except JWTError as exc:
        raise Unauthorized("Not authorized to access this route", cause=exc) from exc
    if not claims.get("sub"):
        raise Unauthorized("Not authorized to access this route")
    return claims
