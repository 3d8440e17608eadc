import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import AuthContext
from mindful_ads.auth.policies import owned_campaign, require_admin, require_super_admin
from mindful_ads.auth.rate_limit import enforce_sensitive_rate_limit
from mindful_ads.db.deps import get_session
from mindful_ads.db.models import Campaign
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.errors import NotFoundError
from mindful_ads.schemas.approvals import (
    ApproveRequest,
    BulkApproveRequest,
    PendingPriority,
    RejectRequest,
    serialize_approval,
)
from mindful_ads.schemas.campaigns import serialize_campaign
from mindful_ads.schemas.common import envelope
from mindful_ads.schemas.fields import Pagination, get_pagination
from mindful_ads.services.ads_orchestrator import AdsOrchestrator, LaunchOptions, get_ads_orchestrator
from mindful_ads.services.approvals import (
    HIGH_PRIORITY_SCORE,
    ApprovalWorkflow,
    LaunchResult,
    average_wait_hours,
)
from mindful_ads.services.notifications import background_notifier

router = APIRouter(prefix="/approvals", tags=["approvals"])
logger = logging.getLogger("approvals.routes")


def _load_campaign(session: Session, campaign_id: str) -> Campaign:
    campaign = CampaignsRepository(session).get(campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign")
    return campaign


def _launch_response(result: LaunchResult, response: Response):
    if result.activated:
        message = "Campaign approved and launched successfully"
    else:
        message = "Campaign approved with some platform errors"
        response.status_code = status.HTTP_207_MULTI_STATUS
    return envelope(
        {
            "campaign": serialize_campaign(result.campaign),
            "approval": serialize_approval(result.approval),
            "platformResults": result.push.as_dict(),
            "activated": result.activated,
        },
        message=message,
    )


@router.post(
    "/campaigns/{campaign_id}/approve",
    dependencies=[Depends(enforce_sensitive_rate_limit)],
)
async def approve_campaign(
    campaign_id: str,
    response: Response,
    background_tasks: BackgroundTasks,
    payload: ApproveRequest | None = None,
    reviewer: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: AdsOrchestrator = Depends(get_ads_orchestrator),
):
    payload = payload or ApproveRequest()
    campaign = _load_campaign(session, campaign_id)
    workflow = ApprovalWorkflow(session, orchestrator=orchestrator, notify=background_notifier(background_tasks))
    result = await workflow.approve(
        campaign,
        reviewer,
        notes=payload.notes,
        options=LaunchOptions(
            use_lead_gen=payload.useLeadGen,
            use_psychology_targeting=payload.usePsychologyTargeting,
        ),
    )
    return _launch_response(result, response)


@router.post(
    "/campaigns/{campaign_id}/retry-launch",
    dependencies=[Depends(enforce_sensitive_rate_limit)],
)
async def retry_campaign_launch(
    campaign_id: str,
    response: Response,
    background_tasks: BackgroundTasks,
    admin: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: AdsOrchestrator = Depends(get_ads_orchestrator),
):
    campaign = _load_campaign(session, campaign_id)
    workflow = ApprovalWorkflow(session, orchestrator=orchestrator, notify=background_notifier(background_tasks))
    result = await workflow.retry_launch(campaign, admin)
    return _launch_response(result, response)


@router.post(
    "/campaigns/{campaign_id}/reject",
    dependencies=[Depends(enforce_sensitive_rate_limit)],
)
def reject_campaign(
    campaign_id: str,
    payload: RejectRequest,
    background_tasks: BackgroundTasks,
    reviewer: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    campaign = _load_campaign(session, campaign_id)
    workflow = ApprovalWorkflow(session, notify=background_notifier(background_tasks))
    campaign, approval = workflow.reject(
        campaign,
        reviewer,
        feedback=payload.feedback,
        reasons=payload.reasons,
        suggested_changes=payload.suggestedChanges,
        needs_changes=payload.needsChanges,
    )
    return envelope(
        {
            "campaign": serialize_campaign(campaign),
            "approval": serialize_approval(approval),
            "feedback": payload.feedback,
            "needsChanges": payload.needsChanges,
        },
        message="Campaign marked as needing changes" if payload.needsChanges else "Campaign rejected",
    )


@router.get("/campaigns/{campaign_id}/history")
def approval_history(
    campaign: Campaign = Depends(owned_campaign),
    session: Session = Depends(get_session),
):
    approvals, current_status = ApprovalWorkflow(session).history(campaign)
    return envelope(
        {
            "campaignName": campaign.name,
            "campaignStatus": campaign.status.value,
            "currentStatus": current_status,
            "approvals": [serialize_approval(approval) for approval in approvals],
        }
    )


@router.get("/pending")
def pending_approvals(
    priority: PendingPriority = "newest",
    pagination: Pagination = Depends(get_pagination),
    _admin: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    items, total = ApprovalWorkflow(session).pending_queue(
        priority=priority,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    campaigns = [
        {
            **serialize_campaign(item["campaign"]).model_dump(),
            "approvalId": item["approval"].id,
            "submittedAt": item["approval"].submitted_at,
            "daysSinceSubmission": item["daysSinceSubmission"],
            "urgencyScore": item["urgencyScore"],
        }
        for item in items
    ]
    return envelope(
        {
            "campaigns": campaigns,
            "pagination": pagination.meta(total),
            "stats": {
                "totalPending": total,
                "averageWaitTime": average_wait_hours(items),
                "highPriority": sum(1 for item in items if item["urgencyScore"] >= HIGH_PRIORITY_SCORE),
            },
        }
    )


@router.get("/statistics")
def approval_statistics(
    days: int = Query(default=30, ge=1, le=365),
    _admin: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    return envelope(ApprovalWorkflow(session).statistics(days))


@router.post(
    "/bulk/approve",
    dependencies=[Depends(enforce_sensitive_rate_limit)],
)
async def bulk_approve_campaigns(
    payload: BulkApproveRequest,
    background_tasks: BackgroundTasks,
    reviewer: AuthContext = Depends(require_super_admin),
    session: Session = Depends(get_session),
    orchestrator: AdsOrchestrator = Depends(get_ads_orchestrator),
):
    workflow = ApprovalWorkflow(session, orchestrator=orchestrator, notify=background_notifier(background_tasks))
    result = await workflow.bulk_approve(
        payload.campaignIds,
        reviewer,
        notes=payload.approvalData.notes,
        options=LaunchOptions(
            use_lead_gen=payload.approvalData.useLeadGen,
            use_psychology_targeting=payload.approvalData.usePsychologyTargeting,
        ),
    )
    summary = result["summary"]
    logger.info("Bulk approval completed", extra={"reviewer_id": reviewer.id, **summary})
    return envelope(
        result,
        message=f"Bulk approval completed: {summary['successful']}/{summary['total']} campaigns approved",
    )
