from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import Header, HTTPException, status
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from branchtale.config import settings

JWT_LEEWAY_SECONDS = 60


def create_access_token(user_id: str, *, expires_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    lifetime = settings.jwt_exp_minutes if expires_minutes is None else expires_minutes
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=lifetime)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "UNAUTHORIZED", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_player_id(token: str) -> str:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"leeway": JWT_LEEWAY_SECONDS},
        )
    except ExpiredSignatureError as exc:
        raise _unauthorized("Access token expired") from exc
    except JWTError as exc:
        raise _unauthorized("Access token invalid") from exc

    player_id = str(payload.get("sub") or "").strip()
    if not player_id:
        raise _unauthorized("Access token has no subject")
    return player_id


def require_player_id(authorization: str | None = Header(default=None)) -> str:
    scheme, _, token = str(authorization or "").strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Missing bearer token")
    return decode_player_id(token.strip())
