import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import SESSION_TOKEN_HEADER, AuthContext, get_current_user
from mindful_ads.auth.passwords import hash_password, verify_password
from mindful_ads.auth.rate_limit import (
    RateLimiter,
    client_ip,
    enforce_sensitive_rate_limit,
    get_login_rate_limiter,
    raise_rate_limited,
)
from mindful_ads.auth.tokens import create_access_token, create_refresh_token, decode_refresh_token
from mindful_ads.config import settings
from mindful_ads.db.deps import get_session
from mindful_ads.db.enums import UserRoleEnum
from mindful_ads.db.models import User, UserSession
from mindful_ads.db.repositories.security_events import SecurityEventsRepository
from mindful_ads.db.repositories.sessions import UserSessionsRepository
from mindful_ads.db.repositories.users import UsersRepository
from mindful_ads.errors import AuthenticationError, ConflictError, NotFoundError
from mindful_ads.schemas.auth import (
    AuthTokens,
    ChangePasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    serialize_user,
)
from mindful_ads.schemas.common import envelope

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("auth.routes")


def _start_session(session: Session, request: Request, user: User) -> AuthTokens:
    user_session = UserSessionsRepository(session).create(
        user_id=user.id,
        ttl=timedelta(hours=settings.SESSION_TTL_HOURS),
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return _issue_tokens(user, user_session)


def _issue_tokens(user: User, user_session: UserSession) -> AuthTokens:
    return AuthTokens(
        user=serialize_user(user),
        accessToken=create_access_token(user, session_id=user_session.id),
        refreshToken=create_refresh_token(user),
        sessionToken=user_session.session_token,
        expiresAt=user_session.expires_at,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    users = UsersRepository(session)
    if users.get_by_email(payload.email):
        raise ConflictError("User with this email already exists", code="EMAIL_EXISTS")
    user = users.create(
        email=payload.email,
        name=payload.name,
        password_hash=hash_password(payload.password),
        role=UserRoleEnum.CLIENT,
        phone=payload.phone,
        company=payload.company,
    )
    logger.info("User registered", extra={"user_id": user.id})
    return envelope(_start_session(session, request, user), message="Registration successful")


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    session: Session = Depends(get_session),
    limiter: RateLimiter = Depends(get_login_rate_limiter),
):
    ip_address = client_ip(request)
    key = (ip_address, payload.email)
    decision = limiter.check(key)
    if not decision.allowed:
        SecurityEventsRepository(session).record(
            "login_rate_limited",
            ip_address=ip_address,
            details={"email": payload.email, "retryAfter": decision.retry_after},
        )
        raise_rate_limited(key, decision, scope="login")

    user = UsersRepository(session).get_by_email(payload.email)
    if user is None or not verify_password(payload.password, user.password_hash):
        limiter.hit(key)
        SecurityEventsRepository(session).record(
            "login_failed",
            user_id=user.id if user else None,
            ip_address=ip_address,
            details={"email": payload.email},
        )
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    if not user.is_active:
        raise AuthenticationError("Account is disabled", code="ACCOUNT_DISABLED")

    limiter.reset(key)
    tokens = _start_session(session, request, user)
    UsersRepository(session).touch_last_login(user.id)
    logger.info("User logged in", extra={"user_id": user.id})
    return envelope(tokens, message="Login successful")


@router.post("/refresh-token")
def refresh_token(
    payload: RefreshTokenRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    claims = decode_refresh_token(payload.refreshToken)
    user = UsersRepository(session).get(str(claims["sub"]))
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid token", code="INVALID_TOKEN")

    session_id: Optional[str] = None
    session_token = request.headers.get(SESSION_TOKEN_HEADER)
    if session_token:
        user_session = UserSessionsRepository(session).get_by_token(session_token)
        if user_session is not None and user_session.user_id == user.id:
            session_id = user_session.id
    return envelope({"accessToken": create_access_token(user, session_id=session_id)})


@router.post("/logout")
def logout(
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    sessions = UserSessionsRepository(session)
    if auth.session_id:
        sessions.delete(auth.session_id)
    session_token = request.headers.get(SESSION_TOKEN_HEADER)
    if session_token:
        user_session = sessions.get_by_token(session_token)
        if user_session is not None and user_session.user_id == auth.id:
            sessions.delete(user_session.id)
    logger.info("User logged out", extra={"user_id": auth.id})
    return envelope(message="Logout successful")


@router.get("/me")
def me(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    user = UsersRepository(session).get(auth.id)
    if user is None:
        raise NotFoundError("User")
    return envelope(serialize_user(user))


@router.post("/change-password", dependencies=[Depends(enforce_sensitive_rate_limit)])
def change_password(
    payload: ChangePasswordRequest,
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    users = UsersRepository(session)
    user = users.get(auth.id)
    if user is None:
        raise NotFoundError("User")
    if not verify_password(payload.currentPassword, user.password_hash):
        SecurityEventsRepository(session).record(
            "password_change_failed",
            user_id=user.id,
            ip_address=client_ip(request),
        )
        raise AuthenticationError("Current password is incorrect", code="INVALID_CREDENTIALS")

    users.update_fields(user, password_hash=hash_password(payload.newPassword))
    SecurityEventsRepository(session).record("password_changed", user_id=user.id, ip_address=client_ip(request))
    return envelope(message="Password changed successfully")
