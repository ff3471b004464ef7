from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from django.conf import settings


ACCESS = "access"
REFRESH = "refresh"


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _issue(*, user_id: uuid.UUID, token_type: str, lifetime: timedelta) -> str:
    now = _now()
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def issue_access_token(*, user_id: uuid.UUID) -> str:
    return _issue(
        user_id=user_id,
        token_type=ACCESS,
        lifetime=timedelta(minutes=int(settings.JWT_ACCESS_TTL_MINUTES)),
    )


def issue_refresh_token(*, user_id: uuid.UUID) -> str:
    return _issue(
        user_id=user_id,
        token_type=REFRESH,
        lifetime=timedelta(days=int(settings.JWT_REFRESH_TTL_DAYS)),
    )


def decode_token(token: str) -> dict:
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )


def token_user_id(token: str, *, token_type: str) -> uuid.UUID | None:
    """User UUID carried by a valid token of ``token_type``, else None."""
    try:
        payload = decode_token(token)
    except jwt.PyJWTError:
        return None
    if payload.get("type") != token_type:
        return None
    try:
        return uuid.UUID(str(payload["sub"]))
    except ValueError:
        return None
