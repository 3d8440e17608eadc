import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import AuthContext
from mindful_ads.auth.policies import require_admin
from mindful_ads.db.deps import get_session
from mindful_ads.db.models import SecurityEvent
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.db.repositories.security_events import SecurityEventsRepository
from mindful_ads.db.repositories.users import UsersRepository
from mindful_ads.schemas.campaigns import serialize_campaign
from mindful_ads.schemas.common import envelope
from mindful_ads.schemas.fields import CampaignStatus, Pagination, Platform, get_pagination
from mindful_ads.services.analytics import AnalyticsService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])
logger = logging.getLogger("admin.routes")


def serialize_security_event(event: SecurityEvent) -> dict:
    return {
        "id": event.id,
        "eventType": event.event_type,
        "userId": event.user_id,
        "ipAddress": event.ip_address,
        "metadata": event.metadata_json or {},
        "createdAt": event.created_at,
    }


@router.get("/stats")
def system_stats(session: Session = Depends(get_session)):
    return envelope(AnalyticsService(session).system_stats())


@router.get("/audit-log")
def audit_log(
    eventType: str | None = Query(default=None, max_length=100),
    userId: str | None = None,
    pagination: Pagination = Depends(get_pagination),
    session: Session = Depends(get_session),
):
    events, total = SecurityEventsRepository(session).list(
        event_type=eventType,
        user_id=userId,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return envelope([serialize_security_event(event) for event in events], pagination=pagination.meta(total))


@router.get("/campaigns")
def all_campaigns(
    status: CampaignStatus | None = None,
    platform: Platform | None = None,
    userId: str | None = None,
    pagination: Pagination = Depends(get_pagination),
    admin: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    items, total = CampaignsRepository(session).list(
        user_id=userId,
        status=status,
        platform=platform,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    users = UsersRepository(session)
    owners = {owner_id: users.get(owner_id) for owner_id in {item.user_id for item in items}}
    campaigns = []
    for item in items:
        owner = owners.get(item.user_id)
        campaigns.append(
            {
                **serialize_campaign(item).model_dump(),
                "user": {"id": owner.id, "name": owner.name, "email": owner.email} if owner else None,
            }
        )
    logger.info("Admin campaign listing", extra={"admin_id": admin.id, "total": total})
    return envelope(campaigns, pagination=pagination.meta(total))
