import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import AuthContext, get_current_user
from mindful_ads.auth.policies import is_admin, owned_campaign, require_admin
from mindful_ads.db.deps import get_session
from mindful_ads.db.enums import ApprovalStatusEnum, CampaignStatusEnum
from mindful_ads.db.models import Campaign, utcnow
from mindful_ads.db.repositories.approvals import CampaignApprovalsRepository
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.db.repositories.leads import LeadsRepository
from mindful_ads.domain import campaign_lifecycle as lifecycle
from mindful_ads.errors import ValidationError
from mindful_ads.schemas.approvals import serialize_approval
from mindful_ads.schemas.campaigns import CampaignCreateRequest, CampaignUpdateRequest, serialize_campaign
from mindful_ads.schemas.common import envelope
from mindful_ads.schemas.fields import CampaignStatus, Pagination, Platform, get_pagination
from mindful_ads.schemas.leads import serialize_lead
from mindful_ads.services.ads_orchestrator import (
    AdsOrchestrator,
    PlatformPushResult,
    apply_platform_ids,
    get_ads_orchestrator,
    linked_platforms,
)
from mindful_ads.services.approvals import ESTIMATED_REVIEW_TIME, ApprovalWorkflow
from mindful_ads.services.metrics import (
    calculate_campaign_metrics,
    counters_from_campaign,
    merge_platform_metrics,
    reset_counters,
)
from mindful_ads.services.notifications import background_notifier

router = APIRouter(prefix="/campaigns", tags=["campaigns"])
logger = logging.getLogger("campaigns.routes")

_FIELD_COLUMNS = {
    "name": "name",
    "platform": "platform",
    "budget": "budget",
    "targetAudience": "target_audience",
    "objectives": "objectives",
    "landingPageSlug": "landing_page_slug",
}
_NULLABLE_FIELDS = {"landingPageSlug"}
WITHDRAWN_REVIEW_NOTE = "Withdrawn: campaign cancelled before review"


def _campaign_response(campaign: Campaign, push: PlatformPushResult | None = None, message: str | None = None):
    extra: dict[str, Any] = {}
    if push is not None:
        extra["platformResults"] = push.as_dict()
    return envelope(serialize_campaign(campaign), message=message, **extra)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_campaign(
    payload: CampaignCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    campaign = CampaignsRepository(session).create(
        user_id=auth.id,
        name=payload.name,
        platform=payload.platform,
        status=CampaignStatusEnum.DRAFT,
        budget=payload.budget,
        target_audience=payload.targetAudience,
        objectives=payload.objectives,
        landing_page_slug=payload.landingPageSlug,
    )
    logger.info("Campaign created", extra={"campaign_id": campaign.id, "user_id": auth.id})
    return _campaign_response(campaign, message="Campaign created successfully")


@router.get("")
def list_campaigns(
    status: CampaignStatus | None = None,
    platform: Platform | None = None,
    pagination: Pagination = Depends(get_pagination),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    items, total = CampaignsRepository(session).list(
        user_id=None if is_admin(auth) else auth.id,
        status=status,
        platform=platform,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return envelope([serialize_campaign(item) for item in items], pagination=pagination.meta(total))


@router.get("/{campaign_id}")
def get_campaign(campaign: Campaign = Depends(owned_campaign)):
    return _campaign_response(campaign)


@router.put("/{campaign_id}")
async def update_campaign(
    payload: CampaignUpdateRequest,
    campaign: Campaign = Depends(owned_campaign),
    session: Session = Depends(get_session),
    orchestrator: AdsOrchestrator = Depends(get_ads_orchestrator),
):
    if campaign.status not in lifecycle.EDITABLE_STATES:
        raise ValidationError(
            f"Campaign cannot be edited while {campaign.status.value}",
            details={"currentStatus": campaign.status.value},
        )

    requested = payload.model_dump(exclude_unset=True)
    empty = [name for name, value in requested.items() if value is None and name not in _NULLABLE_FIELDS]
    if empty:
        raise ValidationError("Fields cannot be empty", details={"fields": sorted(empty)})

    live = lifecycle.is_live(campaign.status)
    if live:
        blocked = set(requested) - lifecycle.LIVE_EDITABLE_FIELDS
        if blocked:
            raise ValidationError(
                "Only name and budget can be changed on a launched campaign",
                details={"fields": sorted(blocked), "currentStatus": campaign.status.value},
            )

    fields = {_FIELD_COLUMNS[name]: value for name, value in requested.items()}
    campaign = CampaignsRepository(session).update(campaign, **fields)

    push = None
    if live and fields and linked_platforms(campaign):
        push = await orchestrator.update(campaign)
        apply_platform_ids(campaign, push)
        session.commit()
        session.refresh(campaign)
    logger.info("Campaign updated", extra={"campaign_id": campaign.id, "fields": sorted(fields)})
    return _campaign_response(campaign, push, message="Campaign updated successfully")


@router.delete("/{campaign_id}")
def delete_campaign(
    campaign: Campaign = Depends(owned_campaign),
    session: Session = Depends(get_session),
):
    if campaign.status not in lifecycle.DELETABLE_STATES:
        raise ValidationError(
            "Only draft or cancelled campaigns can be deleted",
            details={"currentStatus": campaign.status.value},
        )
    campaign_id = campaign.id
    CampaignsRepository(session).delete(campaign)
    logger.info("Campaign deleted", extra={"campaign_id": campaign_id})
    return envelope(message="Campaign deleted successfully")


async def _transition(
    campaign: Campaign,
    session: Session,
    orchestrator: AdsOrchestrator,
    *,
    actor: AuthContext,
    target: CampaignStatusEnum,
    action: str,
    pause_platforms: bool,
):
    lifecycle.ensure_transition(campaign.status, target, action)
    leaving_review = campaign.status == CampaignStatusEnum.PENDING
    if linked_platforms(campaign):
        push = await (orchestrator.pause(campaign) if pause_platforms else orchestrator.resume(campaign))
    else:
        push = PlatformPushResult()
    if push.any_failed:
        logger.warning(
            "Platform status sync incomplete",
            extra={"campaign_id": campaign.id, "action": action, "platform_results": push.as_dict()},
        )
    if leaving_review:
        withdrawn = CampaignApprovalsRepository(session).close_pending(
            campaign.id,
            status=ApprovalStatusEnum.REJECTED,
            reviewer_id=actor.id,
            note=WITHDRAWN_REVIEW_NOTE,
        )
        if withdrawn is not None:
            logger.info("Open review withdrawn", extra={"campaign_id": campaign.id, "approval_id": withdrawn.id})
    campaign.status = target
    session.commit()
    session.refresh(campaign)
    logger.info("Campaign status changed", extra={"campaign_id": campaign.id, "status": target.value})
    return _campaign_response(campaign, push, message=f"Campaign {target.value.lower()}")


@router.post("/{campaign_id}/pause")
async def pause_campaign(
    campaign: Campaign = Depends(owned_campaign),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    orchestrator: AdsOrchestrator = Depends(get_ads_orchestrator),
):
    return await _transition(
        campaign,
        session,
        orchestrator,
        actor=auth,
        target=CampaignStatusEnum.PAUSED, action=lifecycle.PAUSE, pause_platforms=True
    )


@router.post("/{campaign_id}/resume")
async def resume_campaign(
    campaign: Campaign = Depends(owned_campaign),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    orchestrator: AdsOrchestrator = Depends(get_ads_orchestrator),
):
    return await _transition(
        campaign,
        session,
        orchestrator,
        actor=auth,
        target=CampaignStatusEnum.ACTIVE, action=lifecycle.RESUME, pause_platforms=False
    )


@router.post("/{campaign_id}/complete")
async def complete_campaign(
    campaign: Campaign = Depends(owned_campaign),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    orchestrator: AdsOrchestrator = Depends(get_ads_orchestrator),
):
    return await _transition(
        campaign,
        session,
        orchestrator,
        actor=auth,
        target=CampaignStatusEnum.COMPLETED,
        action=lifecycle.COMPLETE,
        pause_platforms=True,
    )


@router.post("/{campaign_id}/cancel")
async def cancel_campaign(
    campaign: Campaign = Depends(owned_campaign),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    orchestrator: AdsOrchestrator = Depends(get_ads_orchestrator),
):
    return await _transition(
        campaign,
        session,
        orchestrator,
        actor=auth,
        target=CampaignStatusEnum.CANCELLED,
        action=lifecycle.CANCEL,
        pause_platforms=True,
    )


@router.post("/{campaign_id}/approvals/submit")
def submit_for_approval(
    background_tasks: BackgroundTasks,
    campaign: Campaign = Depends(owned_campaign),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    workflow = ApprovalWorkflow(session, notify=background_notifier(background_tasks))
    result = workflow.submit(campaign, auth)
    return envelope(
        {
            "campaign": serialize_campaign(result.campaign),
            "approval": serialize_approval(result.approval),
            "approvalId": result.approval.id,
            "estimatedReviewTime": ESTIMATED_REVIEW_TIME,
        },
        message="Campaign submitted for approval successfully",
        warnings=result.warnings,
    )


@router.get("/{campaign_id}/metrics")
def get_campaign_metrics(campaign: Campaign = Depends(owned_campaign)):
    counters = counters_from_campaign(campaign)
    return envelope(
        {
            "campaignId": campaign.id,
            "counters": counters,
            "metrics": calculate_campaign_metrics(counters),
            "syncedAt": campaign.metrics_synced_at,
        }
    )


@router.post("/{campaign_id}/metrics/sync")
async def sync_campaign_metrics(
    campaign: Campaign = Depends(owned_campaign),
    session: Session = Depends(get_session),
    orchestrator: AdsOrchestrator = Depends(get_ads_orchestrator),
):
    if not linked_platforms(campaign):
        raise ValidationError("Campaign is not linked to any ad platform")

    push = await orchestrator.fetch_metrics(campaign)
    fetched = [outcome.metrics.as_dict() for outcome in push.successful() if outcome.metrics is not None]
    if fetched:
        merged = merge_platform_metrics(counters_from_campaign(campaign), fetched)
        campaign = CampaignsRepository(session).update(campaign, metrics_synced_at=utcnow(), **merged)
    logger.info(
        "Campaign metrics synced",
        extra={"campaign_id": campaign.id, "platforms_synced": len(fetched), "platform_results": push.as_dict()},
    )
    return _campaign_response(campaign, push)


@router.post("/{campaign_id}/metrics/reset")
def reset_campaign_metrics(
    admin: AuthContext = Depends(require_admin),
    campaign: Campaign = Depends(owned_campaign),
    session: Session = Depends(get_session),
):
    campaign = CampaignsRepository(session).update(campaign, metrics_synced_at=None, **reset_counters())
    logger.warning("Campaign metrics reset", extra={"campaign_id": campaign.id, "admin_id": admin.id})
    return _campaign_response(campaign, message="Campaign metrics reset")


@router.get("/{campaign_id}/leads")
def list_campaign_leads(
    campaign: Campaign = Depends(owned_campaign),
    pagination: Pagination = Depends(get_pagination),
    session: Session = Depends(get_session),
):
    items, total = LeadsRepository(session).list(
        campaign_id=campaign.id,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return envelope([serialize_lead(lead) for lead in items], pagination=pagination.meta(total))
