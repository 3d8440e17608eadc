import time
from datetime import datetime, timedelta, timezone

from jose import jwt

from mindful_ads.auth.dependencies import LAST_LOGIN_SYNC_HEADER, SESSION_TOKEN_HEADER
from mindful_ads.config import settings
from mindful_ads.db.models import SecurityEvent, User, UserSession

from conftest import TEST_PASSWORD, auth_headers


def _expired_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "isVerified": False,
        "type": "access",
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": now - timedelta(hours=2),
        "exp": now - timedelta(hours=1),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def test_register_creates_client_and_session(api_client, db_session):
    response = api_client.post(
        "/api/auth/register",
        json={"name": "  Dana Therapist ", "email": " Dana@Example.COM ", "password": "secret123"},
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["email"] == "dana@example.com"
    assert data["user"]["name"] == "Dana Therapist"
    assert data["user"]["role"] == "CLIENT"
    assert len(data["sessionToken"]) == 128
    assert data["accessToken"] and data["refreshToken"]
    assert db_session.query(UserSession).count() == 1


def test_register_duplicate_email_conflicts(api_client, client_user):
    response = api_client.post(
        "/api/auth/register",
        json={"name": "Dup", "email": client_user.email.upper(), "password": "secret123"},
    )
    assert response.status_code == 409
    assert response.json()["success"] is False


def test_register_rejects_short_password(api_client):
    response = api_client.post(
        "/api/auth/register",
        json={"name": "Shorty", "email": "short@example.com", "password": "123"},
    )
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_login_and_me(api_client, client_user):
    login = api_client.post("/api/auth/login", json={"email": client_user.email, "password": TEST_PASSWORD})
    assert login.status_code == 200
    tokens = login.json()["data"]

    me = api_client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
    assert me.status_code == 200
    assert me.json()["data"]["id"] == client_user.id


def test_login_rejects_disabled_account(api_client, db_session, client_user):
    client_user.is_active = False
    db_session.commit()
    response = api_client.post("/api/auth/login", json={"email": client_user.email, "password": TEST_PASSWORD})
    assert response.status_code == 401
    assert response.json()["code"] == "ACCOUNT_DISABLED"


def test_missing_token(api_client):
    response = api_client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_expired_token(api_client, client_user):
    response = api_client.get("/api/auth/me", headers={"Authorization": f"Bearer {_expired_token(client_user)}"})
    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


def test_tampered_token(api_client, client_user):
    token = auth_headers(client_user)["Authorization"] + "x"
    response = api_client.get("/api/auth/me", headers={"Authorization": token})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_refresh_token_issues_new_access_token(api_client, client_user):
    login = api_client.post("/api/auth/login", json={"email": client_user.email, "password": TEST_PASSWORD})
    refresh = login.json()["data"]["refreshToken"]

    response = api_client.post("/api/auth/refresh-token", json={"refreshToken": refresh})
    assert response.status_code == 200
    access = response.json()["data"]["accessToken"]
    assert api_client.get("/api/auth/me", headers={"Authorization": f"Bearer {access}"}).status_code == 200


def test_refresh_token_cannot_be_used_as_access_token(api_client, client_user):
    login = api_client.post("/api/auth/login", json={"email": client_user.email, "password": TEST_PASSWORD})
    refresh = login.json()["data"]["refreshToken"]
    response = api_client.get("/api/auth/me", headers={"Authorization": f"Bearer {refresh}"})
    assert response.status_code == 401


def test_change_password(api_client, db_session, client_user):
    headers = auth_headers(client_user)
    wrong = api_client.post(
        "/api/auth/change-password",
        json={"currentPassword": "not-it", "newPassword": "brand-new-pass"},
        headers=headers,
    )
    assert wrong.status_code == 401

    ok = api_client.post(
        "/api/auth/change-password",
        json={"currentPassword": TEST_PASSWORD, "newPassword": "brand-new-pass"},
        headers=headers,
    )
    assert ok.status_code == 200
    login = api_client.post("/api/auth/login", json={"email": client_user.email, "password": "brand-new-pass"})
    assert login.status_code == 200


def test_last_login_sync_is_throttled(api_client, db_session, client_user):
    headers = auth_headers(client_user)
    first = api_client.get("/api/auth/me", headers=headers)
    assert first.status_code == 200
    sync_value = first.headers[LAST_LOGIN_SYNC_HEADER]
    db_session.expire_all()
    assert db_session.get(User, client_user.id).last_login is not None

    fresh = api_client.get("/api/auth/me", headers={**headers, LAST_LOGIN_SYNC_HEADER: sync_value})
    assert LAST_LOGIN_SYNC_HEADER not in fresh.headers

    stale = str(int(time.time()) - settings.LAST_LOGIN_THROTTLE_SECONDS - 5)
    again = api_client.get("/api/auth/me", headers={**headers, LAST_LOGIN_SYNC_HEADER: stale})
    assert LAST_LOGIN_SYNC_HEADER in again.headers


def test_session_mode_requires_matching_session(api_client, db_session, client_user, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_TRUST_MODE", "session")
    login = api_client.post("/api/auth/login", json={"email": client_user.email, "password": TEST_PASSWORD})
    tokens = login.json()["data"]
    bearer = {"Authorization": f"Bearer {tokens['accessToken']}"}

    missing = api_client.get("/api/auth/me", headers=bearer)
    assert missing.status_code == 401
    assert missing.json()["code"] == "SESSION_REQUIRED"

    ok = api_client.get("/api/auth/me", headers={**bearer, SESSION_TOKEN_HEADER: tokens["sessionToken"]})
    assert ok.status_code == 200

    forged = api_client.get("/api/auth/me", headers={**bearer, SESSION_TOKEN_HEADER: "f" * 128})
    assert forged.status_code == 401
    assert forged.json()["code"] == "SESSION_INVALID"
    events = db_session.query(SecurityEvent).filter(SecurityEvent.event_type == "session_mismatch").all()
    assert len(events) == 1
    assert events[0].metadata_json["reason"] == "unknown_session"


def test_session_mode_rejects_session_of_another_user(api_client, db_session, client_user, other_client, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_TRUST_MODE", "session")
    mine = api_client.post("/api/auth/login", json={"email": client_user.email, "password": TEST_PASSWORD})
    theirs = api_client.post("/api/auth/login", json={"email": other_client.email, "password": TEST_PASSWORD})

    response = api_client.get(
        "/api/auth/me",
        headers={
            "Authorization": f"Bearer {mine.json()['data']['accessToken']}",
            SESSION_TOKEN_HEADER: theirs.json()["data"]["sessionToken"],
        },
    )
    assert response.status_code == 401
    assert response.json()["code"] == "SESSION_INVALID"


def test_session_mode_rejects_expired_session(api_client, db_session, client_user, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_TRUST_MODE", "session")
    login = api_client.post("/api/auth/login", json={"email": client_user.email, "password": TEST_PASSWORD})
    tokens = login.json()["data"]
    user_session = db_session.query(UserSession).one()
    user_session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db_session.commit()

    response = api_client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {tokens['accessToken']}", SESSION_TOKEN_HEADER: tokens["sessionToken"]},
    )
    assert response.status_code == 401
    assert response.json()["code"] == "SESSION_INVALID"


def test_logout_deletes_session(api_client, db_session, client_user):
    login = api_client.post("/api/auth/login", json={"email": client_user.email, "password": TEST_PASSWORD})
    tokens = login.json()["data"]
    response = api_client.post(
        "/api/auth/logout",
        headers={"Authorization": f"Bearer {tokens['accessToken']}", SESSION_TOKEN_HEADER: tokens["sessionToken"]},
    )
    assert response.status_code == 200
    assert db_session.query(UserSession).count() == 0
