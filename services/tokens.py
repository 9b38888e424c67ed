"""Signed, time-boxed tokens for links sent outside the authenticated app."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from config import settings
from exceptions import BadRequestError


def create_verification_token(claims: dict[str, Any], expires_in: timedelta) -> tuple[str, datetime]:
    """Sign claims with an expiry. Returns (token, expires_at)."""
    expires_at = datetime.now(timezone.utc) + expires_in
    payload = {**claims, "exp": expires_at}
    token = jwt.encode(payload, settings.token_secret, algorithm=settings.token_algorithm)
    return token, expires_at


def decode_verification_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, settings.token_secret, algorithms=[settings.token_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise BadRequestError("Verification link has expired") from e
    except jwt.InvalidTokenError as e:
        raise BadRequestError("Invalid verification link") from e
