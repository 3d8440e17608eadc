import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import AuthContext, get_current_user
from mindful_ads.auth.policies import ensure_owner, is_admin
from mindful_ads.db.deps import get_session
from mindful_ads.db.models import LandingPage
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.db.repositories.landing_pages import LandingPagesRepository
from mindful_ads.errors import ConflictError, NotFoundError, ValidationError
from mindful_ads.schemas.common import envelope
from mindful_ads.schemas.fields import Pagination, get_pagination
from mindful_ads.schemas.landing_pages import (
    LandingPageCreateRequest,
    LandingPageUpdateRequest,
    serialize_landing_page,
)

router = APIRouter(prefix="/landing-pages", tags=["landing-pages"])
logger = logging.getLogger("landing_pages.routes")

_FIELD_COLUMNS = {
    "name": "name",
    "slug": "slug",
    "template": "template",
    "campaignId": "campaign_id",
    "colors": "colors",
    "content": "content",
    "contact": "contact",
    "seo": "seo",
    "isActive": "is_active",
}


def _owned_page(
    page_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> LandingPage:
    page = LandingPagesRepository(session).get(page_id)
    if page is None:
        raise NotFoundError("Landing page")
    ensure_owner(auth, page.user_id)
    return page


def _check_campaign(session: Session, auth: AuthContext, campaign_id: str | None) -> None:
    if not campaign_id:
        return
    campaign = CampaignsRepository(session).get(campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign")
    ensure_owner(auth, campaign.user_id)


def _check_slug(repo: LandingPagesRepository, slug: str, page_id: str | None = None) -> None:
    existing = repo.get_by_slug(slug)
    if existing is not None and existing.id != page_id:
        raise ConflictError("Landing page slug is already taken", code="SLUG_TAKEN")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_landing_page(
    payload: LandingPageCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = LandingPagesRepository(session)
    _check_slug(repo, payload.slug)
    _check_campaign(session, auth, payload.campaignId)
    page = repo.create(
        user_id=auth.id,
        name=payload.name,
        slug=payload.slug,
        template=payload.template,
        campaign_id=payload.campaignId,
        colors=payload.colors,
        content=payload.content,
        contact=payload.contact,
        seo=payload.seo,
    )
    logger.info("Landing page created", extra={"landing_page_id": page.id, "slug": page.slug})
    return envelope(serialize_landing_page(page), message="Landing page created successfully")


@router.get("")
def list_landing_pages(
    pagination: Pagination = Depends(get_pagination),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    pages = LandingPagesRepository(session).list(
        user_id=None if is_admin(auth) else auth.id,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return envelope([serialize_landing_page(page) for page in pages])


@router.get("/{page_id}")
def get_landing_page(page: LandingPage = Depends(_owned_page)):
    return envelope(serialize_landing_page(page))


@router.put("/{page_id}")
def update_landing_page(
    payload: LandingPageUpdateRequest,
    page: LandingPage = Depends(_owned_page),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = LandingPagesRepository(session)
    requested = payload.model_dump(exclude_unset=True)
    empty = [name for name, value in requested.items() if value is None and name != "campaignId"]
    if empty:
        raise ValidationError("Fields cannot be empty", details={"fields": sorted(empty)})
    if "slug" in requested:
        _check_slug(repo, requested["slug"], page.id)
    if "campaignId" in requested:
        _check_campaign(session, auth, requested["campaignId"])

    fields = {_FIELD_COLUMNS[name]: value for name, value in requested.items()}
    if fields:
        page = repo.update(page, **fields)
    return envelope(serialize_landing_page(page), message="Landing page updated successfully")


@router.delete("/{page_id}")
def delete_landing_page(
    page: LandingPage = Depends(_owned_page),
    session: Session = Depends(get_session),
):
    page_id = page.id
    LandingPagesRepository(session).delete(page)
    logger.info("Landing page deleted", extra={"landing_page_id": page_id})
    return envelope(message="Landing page deleted successfully")
