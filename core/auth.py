from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from core.config import Settings


ALGORITHM = "HS256"

logger = logging.getLogger(__name__)


class AuthError(Exception):
    pass


@dataclass(frozen=True)
class TokenPayload:
    user_id: int
    username: str


def issue_token(user_id: int, username: str, settings: Settings, *, now: Optional[datetime] = None) -> str:
    issued = now or datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "userId": int(user_id),
        "username": str(username),
        "iat": issued,
        "exp": issued + timedelta(hours=settings.jwt_expires_hours),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)


def verify_token(token: Optional[str], settings: Settings) -> TokenPayload:
    if not token:
        raise AuthError("Missing token")
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        logger.info("Token verification failed: expired")
        raise AuthError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        logger.info("Token verification failed: %s", exc)
        raise AuthError("Invalid token") from exc

    user_id = claims.get("userId")
    username = claims.get("username")
    if user_id is None or not username:
        raise AuthError("Token missing user claims")
    try:
        return TokenPayload(user_id=int(user_id), username=str(username))
    except (TypeError, ValueError) as exc:
        raise AuthError("Token missing user claims") from exc
