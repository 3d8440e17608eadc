from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from mindful_ads.db.models import Lead
from mindful_ads.schemas.fields import Email, LeadStatus, PersonName, Phone


class LeadCreateRequest(BaseModel):
    name: PersonName
    email: Email
    phone: Phone | None = None
    campaignId: str | None = None
    source: str = Field(default="manual", min_length=1, max_length=50)
    notes: str | None = Field(default=None, max_length=2000)
    value: float | None = Field(default=None, ge=0)


class LeadUpdateRequest(BaseModel):
    status: LeadStatus | None = None
    notes: str | None = Field(default=None, max_length=2000)
    value: float | None = Field(default=None, ge=0)


class LeadOut(BaseModel):
    id: str
    userId: str
    campaignId: str | None = None
    name: str
    email: str
    phone: str | None = None
    source: str
    status: LeadStatus
    notes: str | None = None
    value: float | None = None
    utmSource: str | None = None
    utmMedium: str | None = None
    utmCampaign: str | None = None
    createdAt: datetime | None = None
    updatedAt: datetime | None = None


def serialize_lead(lead: Lead) -> LeadOut:
    return LeadOut(
        id=lead.id,
        userId=lead.user_id,
        campaignId=lead.campaign_id,
        name=lead.name,
        email=lead.email,
        phone=lead.phone,
        source=lead.source,
        status=lead.status,
        notes=lead.notes,
        value=lead.value,
        utmSource=lead.utm_source,
        utmMedium=lead.utm_medium,
        utmCampaign=lead.utm_campaign,
        createdAt=lead.created_at,
        updatedAt=lead.updated_at,
    )
