import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from mindful_ads.db.deps import get_session
from mindful_ads.db.models import LandingPage
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.db.repositories.landing_pages import LandingPagesRepository
from mindful_ads.db.repositories.leads import LeadsRepository
from mindful_ads.errors import NotFoundError
from mindful_ads.schemas.common import envelope
from mindful_ads.schemas.landing_pages import PublicLeadCaptureRequest, serialize_public_landing_page

router = APIRouter(prefix="/public/landing-pages", tags=["public"])
logger = logging.getLogger("public.routes")

LANDING_PAGE_SOURCE = "landing_page"


def _active_page(session: Session, slug: str) -> LandingPage:
    page = LandingPagesRepository(session).get_by_slug(slug)
    if page is None or not page.is_active:
        raise NotFoundError("Landing page")
    return page


@router.get("/{slug}")
def view_landing_page(slug: str, session: Session = Depends(get_session)):
    page = _active_page(session, slug)
    LandingPagesRepository(session).increment(page.id, visits=1)
    return envelope(serialize_public_landing_page(page))


@router.post("/{slug}/leads", status_code=status.HTTP_201_CREATED)
def capture_lead(
    slug: str,
    payload: PublicLeadCaptureRequest,
    session: Session = Depends(get_session),
):
    page = _active_page(session, slug)
    lead = LeadsRepository(session).create(
        user_id=page.user_id,
        campaign_id=page.campaign_id,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        source=LANDING_PAGE_SOURCE,
        notes=payload.message,
        utm_source=payload.utmSource,
        utm_medium=payload.utmMedium,
        utm_campaign=payload.utmCampaign,
    )
    LandingPagesRepository(session).increment(page.id, conversions=1)
    if page.campaign_id:
        CampaignsRepository(session).increment_leads(page.campaign_id)
    logger.info(
        "Lead captured from landing page",
        extra={"lead_id": lead.id, "slug": slug, "campaign_id": page.campaign_id},
    )
    return envelope({"leadId": lead.id}, message="Thank you! We will be in touch soon.")
