from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import BackgroundTasks, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mindful_ads.auth.tokens import decode_access_token
from mindful_ads.config import settings
from mindful_ads.db.base import session_scope
from mindful_ads.db.deps import get_session
from mindful_ads.db.enums import UserRoleEnum
from mindful_ads.db.models import as_utc, utcnow
from mindful_ads.db.repositories.security_events import SecurityEventsRepository
from mindful_ads.db.repositories.sessions import UserSessionsRepository
from mindful_ads.db.repositories.users import UsersRepository
from mindful_ads.errors import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")

SESSION_TOKEN_HEADER = "X-Session-Token"
LAST_LOGIN_SYNC_HEADER = "X-Last-Login-Sync"


@dataclass
class AuthContext:
    id: str
    email: str
    name: str
    role: UserRoleEnum
    is_verified: bool
    session_id: Optional[str] = None


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _context_from_claims(claims: dict[str, Any]) -> AuthContext:
    try:
        role = UserRoleEnum(claims.get("role"))
    except ValueError as exc:
        raise AuthenticationError("Invalid token", code="INVALID_TOKEN") from exc
    email = claims.get("email")
    if not email:
        raise AuthenticationError("Invalid token", code="INVALID_TOKEN")
    return AuthContext(
        id=str(claims["sub"]),
        email=email,
        name=claims.get("name") or "",
        role=role,
        is_verified=bool(claims.get("isVerified")),
        session_id=claims.get("sid"),
    )


def _reject_session(
    session: Session,
    request: Request,
    *,
    reason: str,
    user_id: Optional[str],
    details: Optional[dict[str, Any]] = None,
) -> AuthenticationError:
    SecurityEventsRepository(session).record(
        "session_mismatch",
        user_id=user_id,
        ip_address=_client_ip(request),
        details={"reason": reason, "path": request.url.path, **(details or {})},
    )
    return AuthenticationError("Invalid or expired session", code="SESSION_INVALID")


def _verify_session(request: Request, claims: dict[str, Any], session: Session) -> AuthContext:
    session_token = request.headers.get(SESSION_TOKEN_HEADER)
    if not session_token:
        raise AuthenticationError("Session token required", code="SESSION_REQUIRED")

    subject = str(claims["sub"])
    sessions_repo = UserSessionsRepository(session)
    user_session = sessions_repo.get_by_token(session_token)
    if user_session is None:
        raise _reject_session(session, request, reason="unknown_session", user_id=subject)
    if as_utc(user_session.expires_at) <= utcnow():
        raise _reject_session(session, request, reason="expired_session", user_id=subject)
    if user_session.user_id != subject:
        raise _reject_session(
            session,
            request,
            reason="user_mismatch",
            user_id=subject,
            details={"session_user_id": user_session.user_id},
        )
    claimed_sid = claims.get("sid")
    if claimed_sid and claimed_sid != user_session.id:
        raise _reject_session(session, request, reason="sid_mismatch", user_id=subject)

    user = UsersRepository(session).get(subject)
    if user is None or not user.is_active:
        raise _reject_session(session, request, reason="inactive_user", user_id=subject)

    sessions_repo.touch(user_session)
    return AuthContext(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        is_verified=user.is_verified,
        session_id=user_session.id,
    )


def sync_last_login(user_id: str) -> None:
    try:
        with session_scope() as session:
            UsersRepository(session).touch_last_login(user_id)
    except SQLAlchemyError:
        logger.exception("Failed to update last login", extra={"user_id": user_id})


def _last_login_is_stale(raw_value: Optional[str], now: float) -> bool:
    if not raw_value:
        return True
    try:
        last_sync = float(raw_value)
    except ValueError:
        return True
    return now - last_sync >= settings.LAST_LOGIN_THROTTLE_SECONDS


def get_current_user(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required", code="INVALID_TOKEN")

    claims = decode_access_token(credentials.credentials)
    if settings.session_verification_enabled:
        auth = _verify_session(request, claims, session)
    else:
        auth = _context_from_claims(claims)

    now = time.time()
    if _last_login_is_stale(request.headers.get(LAST_LOGIN_SYNC_HEADER), now):
        background_tasks.add_task(sync_last_login, auth.id)
        response.headers[LAST_LOGIN_SYNC_HEADER] = str(int(now))

    logger.debug("AuthContext built", extra={"sub": auth.id, "role": auth.role.value})
    return auth
