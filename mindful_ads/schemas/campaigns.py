from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from mindful_ads.db.models import Campaign
from mindful_ads.schemas.fields import CampaignStatus, Platform
from mindful_ads.services.metrics import calculate_campaign_metrics, counters_from_campaign


def _clean_objectives(value: list[str] | None) -> list[str] | None:
    if value is None:
        return None
    cleaned = [item.strip() for item in value if item and item.strip()]
    if not cleaned:
        raise ValueError("At least one objective is required")
    return cleaned


class CampaignCreateRequest(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    platform: Platform
    budget: float = Field(gt=0)
    targetAudience: str = Field(min_length=10, max_length=1000)
    objectives: list[str] = Field(min_length=1)
    landingPageSlug: str | None = Field(default=None, max_length=120)

    @field_validator("objectives")
    @classmethod
    def validate_objectives(cls, value: list[str]) -> list[str]:
        return _clean_objectives(value)


class CampaignUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=3, max_length=100)
    platform: Platform | None = None
    budget: float | None = Field(default=None, gt=0)
    targetAudience: str | None = Field(default=None, min_length=10, max_length=1000)
    objectives: list[str] | None = None
    landingPageSlug: str | None = Field(default=None, max_length=120)

    @field_validator("objectives")
    @classmethod
    def validate_objectives(cls, value: list[str] | None) -> list[str] | None:
        return _clean_objectives(value)


class CampaignOut(BaseModel):
    id: str
    userId: str
    name: str
    platform: Platform
    status: CampaignStatus
    budget: float
    targetAudience: str
    objectives: list[str]
    landingPageSlug: str | None = None
    metaCampaignId: str | None = None
    googleCampaignId: str | None = None
    platformDetails: dict[str, Any] = Field(default_factory=dict)
    impressions: int
    clicks: int
    conversions: int
    cost: float
    leads: int
    metrics: dict[str, float]
    metricsSyncedAt: datetime | None = None
    createdAt: datetime | None = None
    updatedAt: datetime | None = None


def serialize_campaign(campaign: Campaign) -> CampaignOut:
    return CampaignOut(
        id=campaign.id,
        userId=campaign.user_id,
        name=campaign.name,
        platform=campaign.platform,
        status=campaign.status,
        budget=campaign.budget,
        targetAudience=campaign.target_audience,
        objectives=list(campaign.objectives or []),
        landingPageSlug=campaign.landing_page_slug,
        metaCampaignId=campaign.meta_campaign_id,
        googleCampaignId=campaign.google_campaign_id,
        platformDetails=dict(campaign.platform_details or {}),
        impressions=campaign.impressions,
        clicks=campaign.clicks,
        conversions=campaign.conversions,
        cost=campaign.cost,
        leads=campaign.leads,
        metrics=calculate_campaign_metrics(counters_from_campaign(campaign)),
        metricsSyncedAt=campaign.metrics_synced_at,
        createdAt=campaign.created_at,
        updatedAt=campaign.updated_at,
    )
