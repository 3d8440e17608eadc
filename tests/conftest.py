import asyncio
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_mindful_ads.db")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test_jwt_refresh_secret")
os.environ.setdefault("FRONTEND_URL", "https://app.example.com")
os.environ.setdefault("AUTH_TRUST_MODE", "claims")

from mindful_ads.auth.passwords import hash_password  # noqa: E402
from mindful_ads.auth.rate_limit import get_login_rate_limiter, get_sensitive_rate_limiter  # noqa: E402
from mindful_ads.auth.tokens import create_access_token  # noqa: E402
from mindful_ads.db.base import Base, SessionLocal, init_db  # noqa: E402
from mindful_ads.db.enums import AdPlatformEnum, CampaignStatusEnum, PlatformEnum, UserRoleEnum  # noqa: E402
from mindful_ads.db.models import Campaign, User  # noqa: E402
from mindful_ads.db.repositories.campaigns import CampaignsRepository  # noqa: E402
from mindful_ads.db.repositories.users import UsersRepository  # noqa: E402
from mindful_ads.main import app  # noqa: E402
from mindful_ads.services.ad_platforms.base import (  # noqa: E402
    AdPlatformClient,
    AdPlatformError,
    PlatformCampaignRef,
    PlatformMetrics,
)
from mindful_ads.services.ads_orchestrator import AdsOrchestrator, get_ads_orchestrator  # noqa: E402

TEST_PASSWORD = "correct-horse"
FAKE_PLATFORM_TIMEOUT = 0.2


class FakePlatformClient(AdPlatformClient):
    """In-memory ad platform that records every call it receives."""

    def __init__(self, platform: AdPlatformEnum) -> None:
        self.platform = platform
        self.fail_with: str | None = None
        self.delay = 0.0
        self.metrics = PlatformMetrics()
        self.created: list = []
        self.updated: list = []
        self.paused: list[str] = []
        self.resumed: list[str] = []

    async def _maybe_fail(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with:
            raise AdPlatformError(self.fail_with, platform=self.platform)

    async def create_campaign(self, spec):
        await self._maybe_fail()
        self.created.append(spec)
        platform_id = f"{self.platform.value.lower()}-{len(self.created)}"
        return PlatformCampaignRef(platform_id=platform_id, details={"createdFor": spec.local_campaign_id})

    async def update_campaign(self, platform_id, spec, details=None):
        await self._maybe_fail()
        self.updated.append((platform_id, spec, details))
        return PlatformCampaignRef(platform_id=platform_id, details=dict(details or {}))

    async def pause_campaign(self, platform_id):
        await self._maybe_fail()
        self.paused.append(platform_id)

    async def resume_campaign(self, platform_id):
        await self._maybe_fail()
        self.resumed.append(platform_id)

    async def fetch_metrics(self, platform_id):
        await self._maybe_fail()
        return self.metrics


def _clear_tables(session) -> None:
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()


@pytest.fixture()
def db_session():
    init_db()
    session = SessionLocal()
    _clear_tables(session)
    try:
        yield session
    finally:
        session.rollback()
        _clear_tables(session)
        session.close()


@pytest.fixture(autouse=True)
def reset_rate_limiters():
    get_login_rate_limiter().clear()
    get_sensitive_rate_limiter().clear()
    yield
    get_login_rate_limiter().clear()
    get_sensitive_rate_limiter().clear()


@pytest.fixture()
def fake_platforms():
    clients = {platform: FakePlatformClient(platform) for platform in AdPlatformEnum}
    factories = {platform: (lambda client=client: client) for platform, client in clients.items()}

    def get_orchestrator_override() -> AdsOrchestrator:
        return AdsOrchestrator(factories, timeout=FAKE_PLATFORM_TIMEOUT)

    app.dependency_overrides[get_ads_orchestrator] = get_orchestrator_override
    try:
        yield clients
    finally:
        app.dependency_overrides.pop(get_ads_orchestrator, None)


@pytest.fixture()
def sent_emails(monkeypatch):
    from mindful_ads.services import notifications

    sent = []

    def fake_send_email(message):
        sent.append(message)
        return True

    monkeypatch.setattr(notifications, "send_email", fake_send_email)
    return sent


@pytest.fixture()
def api_client(db_session, fake_platforms):
    with TestClient(app) as client:
        yield client


def make_user(session, *, email: str, role: UserRoleEnum = UserRoleEnum.CLIENT, name: str = "Test User") -> User:
    return UsersRepository(session).create(
        email=email,
        name=name,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
    )


def auth_headers(user: User, session_id: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user, session_id=session_id)}"}


@pytest.fixture()
def client_user(db_session) -> User:
    return make_user(db_session, email="client@example.com", name="Dr. Client")


@pytest.fixture()
def other_client(db_session) -> User:
    return make_user(db_session, email="other@example.com", name="Other Client")


@pytest.fixture()
def admin_user(db_session) -> User:
    return make_user(db_session, email="admin@example.com", role=UserRoleEnum.ADMIN, name="Admin")


@pytest.fixture()
def super_admin(db_session) -> User:
    return make_user(db_session, email="root@example.com", role=UserRoleEnum.SUPER_ADMIN, name="Root")


def make_campaign(session, owner: User, **overrides) -> Campaign:
    fields = {
        "name": "Anxiety Support Spring",
        "platform": PlatformEnum.BOTH,
        "status": CampaignStatusEnum.DRAFT,
        "budget": 1500.0,
        "target_audience": "Adults 25-45 dealing with anxiety in Austin",
        "objectives": ["leads", "awareness"],
    }
    fields.update(overrides)
    return CampaignsRepository(session).create(user_id=owner.id, **fields)


@pytest.fixture()
def draft_campaign(db_session, client_user) -> Campaign:
    return make_campaign(db_session, client_user)
