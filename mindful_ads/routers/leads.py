import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import AuthContext, get_current_user
from mindful_ads.auth.policies import ensure_owner, is_admin, require_admin
from mindful_ads.db.deps import get_session
from mindful_ads.db.models import Lead
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.db.repositories.leads import LeadsRepository
from mindful_ads.errors import NotFoundError
from mindful_ads.schemas.common import envelope
from mindful_ads.schemas.fields import LeadStatus, Pagination, get_pagination
from mindful_ads.schemas.leads import LeadCreateRequest, LeadUpdateRequest, serialize_lead

router = APIRouter(prefix="/leads", tags=["leads"])
logger = logging.getLogger("leads.routes")


def _owned_lead(
    lead_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Lead:
    lead = LeadsRepository(session).get(lead_id)
    if lead is None:
        raise NotFoundError("Lead")
    ensure_owner(auth, lead.user_id)
    return lead


@router.post("", status_code=status.HTTP_201_CREATED)
def create_lead(
    payload: LeadCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    campaigns = CampaignsRepository(session)
    if payload.campaignId:
        campaign = campaigns.get(payload.campaignId)
        if campaign is None:
            raise NotFoundError("Campaign")
        ensure_owner(auth, campaign.user_id)

    lead = LeadsRepository(session).create(
        user_id=auth.id,
        campaign_id=payload.campaignId,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        source=payload.source,
        notes=payload.notes,
        value=payload.value,
    )
    if payload.campaignId:
        campaigns.increment_leads(payload.campaignId)
    logger.info("Lead created", extra={"lead_id": lead.id, "campaign_id": payload.campaignId})
    return envelope(serialize_lead(lead), message="Lead created successfully")


@router.get("")
def list_leads(
    status: LeadStatus | None = None,
    campaignId: str | None = None,
    search: str | None = Query(default=None, max_length=100),
    pagination: Pagination = Depends(get_pagination),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    items, total = LeadsRepository(session).list(
        user_id=None if is_admin(auth) else auth.id,
        campaign_id=campaignId,
        status=status,
        search=search,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return envelope([serialize_lead(lead) for lead in items], pagination=pagination.meta(total))


@router.get("/{lead_id}")
def get_lead(lead: Lead = Depends(_owned_lead)):
    return envelope(serialize_lead(lead))


@router.put("/{lead_id}")
def update_lead(
    payload: LeadUpdateRequest,
    lead: Lead = Depends(_owned_lead),
    session: Session = Depends(get_session),
):
    fields = payload.model_dump(exclude_unset=True)
    if fields.get("status") is None:
        fields.pop("status", None)
    if fields:
        lead = LeadsRepository(session).update(lead, **fields)
    return envelope(serialize_lead(lead), message="Lead updated successfully")


@router.delete("/{lead_id}")
def delete_lead(
    lead_id: str,
    admin: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    repo = LeadsRepository(session)
    lead = repo.get(lead_id)
    if lead is None:
        raise NotFoundError("Lead")
    repo.delete(lead)
    logger.info("Lead deleted", extra={"lead_id": lead_id, "admin_id": admin.id})
    return envelope(message="Lead deleted successfully")
