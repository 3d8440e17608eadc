from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"

    DATABASE_URL: str = "sqlite:///./mindful_ads.db"
    DB_POOL_SIZE: int = 20
    DB_POOL_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30

    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    FRONTEND_URL: str = "http://localhost:5173"

    JWT_SECRET: str
    JWT_REFRESH_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "mindful-ad-wizard"
    JWT_AUDIENCE: str = "mindful-ad-wizard-users"
    JWT_ACCESS_TTL_MINUTES: int = 60 * 24
    JWT_REFRESH_TTL_DAYS: int = 7

    # "claims" trusts verified token claims; "session" also cross-checks X-Session-Token.
    AUTH_TRUST_MODE: str = "claims"
    SESSION_TTL_HOURS: int = 24
    LAST_LOGIN_THROTTLE_SECONDS: int = 300

    LOGIN_RATE_LIMIT_ATTEMPTS: int = 5
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    SENSITIVE_RATE_LIMIT_ATTEMPTS: int = 30
    SENSITIVE_RATE_LIMIT_WINDOW_SECONDS: int = 60

    META_ACCESS_TOKEN: str | None = None
    META_GRAPH_API_VERSION: str = "v18.0"
    META_GRAPH_API_BASE_URL: str = "https://graph.facebook.com"
    META_AD_ACCOUNT_ID: str | None = None
    META_PAGE_ID: str | None = None

    GOOGLE_ADS_DEVELOPER_TOKEN: str | None = None
    GOOGLE_ADS_CLIENT_ID: str | None = None
    GOOGLE_ADS_CLIENT_SECRET: str | None = None
    GOOGLE_ADS_REFRESH_TOKEN: str | None = None
    GOOGLE_ADS_CUSTOMER_ID: str | None = None
    GOOGLE_ADS_LOGIN_CUSTOMER_ID: str | None = None
    GOOGLE_ADS_API_VERSION: str = "v17"
    GOOGLE_ADS_API_BASE_URL: str = "https://googleads.googleapis.com"

    AD_PLATFORM_TIMEOUT_SECONDS: float = 30.0
    BULK_APPROVE_MAX: int = 10

    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    EMAIL_FROM: str = "Mindful Ad Wizard <no-reply@mindfuladwizard.com>"

    @field_validator("DATABASE_URL")
    @classmethod
    def normalize_database_url(cls, value: str) -> str:
        if value.startswith("postgres://"):
            return value.replace("postgres://", "postgresql+psycopg://", 1)
        if value.startswith("postgresql://"):
            return value.replace("postgresql://", "postgresql+psycopg://", 1)
        return value

    @field_validator("AUTH_TRUST_MODE")
    @classmethod
    def validate_trust_mode(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"claims", "session"}:
            raise ValueError("AUTH_TRUST_MODE must be 'claims' or 'session'")
        return normalized

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def session_verification_enabled(self) -> bool:
        return self.AUTH_TRUST_MODE == "session"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
