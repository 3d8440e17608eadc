from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from mindful_ads.db.models import LandingPage
from mindful_ads.schemas.fields import Email, PersonName, Phone

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class LandingPageCreateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    slug: str = Field(min_length=3, max_length=120, pattern=SLUG_PATTERN)
    template: str = Field(default="modern", min_length=1, max_length=50)
    campaignId: str | None = None
    colors: dict[str, Any] = Field(default_factory=dict)
    content: dict[str, Any] = Field(default_factory=dict)
    contact: dict[str, Any] = Field(default_factory=dict)
    seo: dict[str, Any] = Field(default_factory=dict)


class LandingPageUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    slug: str | None = Field(default=None, min_length=3, max_length=120, pattern=SLUG_PATTERN)
    template: str | None = Field(default=None, min_length=1, max_length=50)
    campaignId: str | None = None
    colors: dict[str, Any] | None = None
    content: dict[str, Any] | None = None
    contact: dict[str, Any] | None = None
    seo: dict[str, Any] | None = None
    isActive: bool | None = None


class PublicLeadCaptureRequest(BaseModel):
    name: PersonName
    email: Email
    phone: Phone | None = None
    message: str | None = Field(default=None, max_length=2000)
    utmSource: str | None = Field(default=None, max_length=100)
    utmMedium: str | None = Field(default=None, max_length=100)
    utmCampaign: str | None = Field(default=None, max_length=100)


class LandingPageOut(BaseModel):
    id: str
    userId: str
    campaignId: str | None = None
    name: str
    slug: str
    template: str
    colors: dict[str, Any]
    content: dict[str, Any]
    contact: dict[str, Any]
    seo: dict[str, Any]
    visits: int
    conversions: int
    isActive: bool
    createdAt: datetime | None = None
    updatedAt: datetime | None = None


class PublicLandingPageOut(BaseModel):
    slug: str
    name: str
    template: str
    colors: dict[str, Any]
    content: dict[str, Any]
    contact: dict[str, Any]
    seo: dict[str, Any]


def serialize_landing_page(page: LandingPage) -> LandingPageOut:
    return LandingPageOut(
        id=page.id,
        userId=page.user_id,
        campaignId=page.campaign_id,
        name=page.name,
        slug=page.slug,
        template=page.template,
        colors=dict(page.colors or {}),
        content=dict(page.content or {}),
        contact=dict(page.contact or {}),
        seo=dict(page.seo or {}),
        visits=page.visits,
        conversions=page.conversions,
        isActive=page.is_active,
        createdAt=page.created_at,
        updatedAt=page.updated_at,
    )


def serialize_public_landing_page(page: LandingPage) -> PublicLandingPageOut:
    return PublicLandingPageOut(
        slug=page.slug,
        name=page.name,
        template=page.template,
        colors=dict(page.colors or {}),
        content=dict(page.content or {}),
        contact=dict(page.contact or {}),
        seo=dict(page.seo or {}),
    )
