from datetime import datetime, timedelta, timezone

import jwt

from portfolio_backend.core import config


def _encode(subject: str, secret: str, expire_minutes: int, token_type: str) -> str:
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "type": token_type,
        "exp": issued_at + timedelta(minutes=expire_minutes),
        "iat": issued_at,
    }
    return jwt.encode(payload, secret, algorithm=config.JWT_ALGORITHM)


def create_access_token(subject: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    return _encode(subject, config.JWT_SECRET_KEY, expire_minutes, "access")


def create_refresh_token(subject: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_REFRESH_EXPIRES_MINUTES
    return _encode(subject, config.JWT_REFRESH_SECRET_KEY, expire_minutes, "refresh")


def decode_access_token(token: str) -> dict:
    payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Not an access token")
    return payload


def decode_refresh_token(token: str) -> dict:
    payload = jwt.decode(token, config.JWT_REFRESH_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    if payload.get("type") != "refresh":
        raise jwt.InvalidTokenError("Not a refresh token")
    return payload
