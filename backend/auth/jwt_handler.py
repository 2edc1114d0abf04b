from datetime import datetime, timedelta, timezone

import jwt

from backend.core import config

BEARER_PREFIX = "bearer "


def create_access_token(subject: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {"sub": subject, "exp": issued_at + timedelta(minutes=expire_minutes), "iat": issued_at}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def strip_bearer(token: str) -> str:
    trimmed = (token or "").strip()
    if trimmed.lower().startswith(BEARER_PREFIX):
        return trimmed[len(BEARER_PREFIX):].strip()
    return trimmed


def decode_access_token(token: str) -> dict:
    return jwt.decode(strip_bearer(token), config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def extract_subject(token: str) -> str | None:
    """Return the verified subject (contact identifier) or None if the token is unusable."""
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        return None
    return subject.strip()
