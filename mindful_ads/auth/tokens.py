from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from mindful_ads.config import settings
from mindful_ads.db.models import User
from mindful_ads.errors import AuthenticationError

logger = logging.getLogger("auth.tokens")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _role_value(user: User) -> str:
    return user.role.value if hasattr(user.role, "value") else str(user.role)


def _encode(claims: Dict[str, Any], *, secret: str, ttl: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl,
        "jti": str(uuid4()),
    }
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user: User, session_id: Optional[str] = None) -> str:
    claims: Dict[str, Any] = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "role": _role_value(user),
        "isVerified": bool(user.is_verified),
        "type": ACCESS_TOKEN_TYPE,
    }
    if session_id:
        claims["sid"] = session_id
    return _encode(
        claims,
        secret=settings.JWT_SECRET,
        ttl=timedelta(minutes=settings.JWT_ACCESS_TTL_MINUTES),
    )


def create_refresh_token(user: User) -> str:
    return _encode(
        {"sub": user.id, "type": REFRESH_TOKEN_TYPE},
        secret=settings.JWT_REFRESH_SECRET,
        ttl=timedelta(days=settings.JWT_REFRESH_TTL_DAYS),
    )


def _decode(token: str, *, secret: str, expected_type: str) -> Dict[str, Any]:
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except ExpiredSignatureError as exc:
        raise AuthenticationError("Token has expired", code="TOKEN_EXPIRED") from exc
    except JWTError as exc:
        logger.info("Token verification failed", extra={"error": str(exc), "token_type": expected_type})
        raise AuthenticationError("Invalid token", code="INVALID_TOKEN") from exc

    if claims.get("type") != expected_type or not claims.get("sub"):
        raise AuthenticationError("Invalid token", code="INVALID_TOKEN")
    return claims


def decode_access_token(token: str) -> Dict[str, Any]:
    return _decode(token, secret=settings.JWT_SECRET, expected_type=ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> Dict[str, Any]:
    return _decode(token, secret=settings.JWT_REFRESH_SECRET, expected_type=REFRESH_TOKEN_TYPE)
