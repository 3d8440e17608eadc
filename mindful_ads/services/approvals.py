"""Campaign approval workflow.

A review decision is committed before any ad platform is called, so a vendor
outage never loses it. A campaign only becomes ACTIVE once every platform it
targets has accepted the push; otherwise it stays PENDING with whatever
platform ids were obtained, and the launch can be retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import AuthContext
from mindful_ads.db.enums import ApprovalStatusEnum, CampaignStatusEnum, PlatformEnum
from mindful_ads.db.models import Campaign, CampaignApproval, as_utc, utcnow
from mindful_ads.db.repositories.approvals import CampaignApprovalsRepository
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.db.repositories.users import UsersRepository
from mindful_ads.domain import campaign_lifecycle as lifecycle
from mindful_ads.errors import AppError, ConflictError, NotFoundError, ValidationError
from mindful_ads.services.ads_orchestrator import (
    AdsOrchestrator,
    LaunchOptions,
    PlatformPushResult,
    apply_platform_ids,
)
from mindful_ads.services.metrics import calculate_percentage, round_2
from mindful_ads.services.notifications import (
    EmailMessage,
    campaign_approved_email,
    campaign_rejected_email,
    campaign_submitted_email,
)

logger = logging.getLogger("approvals")

ESTIMATED_REVIEW_TIME = "2-4 business hours"
MIN_BUDGET = 100
HIGH_BUDGET_WARNING = 50000
HIGH_BUDGET_URGENCY = 5000
HIGH_PRIORITY_SCORE = 4
PROHIBITED_TERMS = (
    "guaranteed cure",
    "miracle treatment",
    "instant results",
    "diagnose",
    "prescription",
    "medical advice",
    "cheapest",
    "best therapist",
    "only solution",
)

Notifier = Callable[[EmailMessage], None]


def _drop_notification(message: EmailMessage) -> None:
    logger.debug("Notification dropped", extra={"to": message.to, "subject": message.subject})


@dataclass
class SubmissionResult:
    campaign: Campaign
    approval: CampaignApproval
    warnings: list[str] = field(default_factory=list)


@dataclass
class LaunchResult:
    campaign: Campaign
    approval: CampaignApproval
    push: PlatformPushResult

    @property
    def activated(self) -> bool:
        return self.campaign.status == CampaignStatusEnum.ACTIVE


def find_prohibited_terms(campaign: Campaign) -> list[str]:
    text = " ".join([campaign.name or "", campaign.target_audience or "", *(campaign.objectives or [])]).lower()
    return [term for term in PROHIBITED_TERMS if term in text]


def validate_campaign_for_approval(campaign: Campaign) -> tuple[list[str], list[str]]:
    errors: list[str] = []
    warnings: list[str] = []
    if not campaign.name or len(campaign.name.strip()) < 3:
        errors.append("Campaign name must be at least 3 characters long")
    if not campaign.target_audience or len(campaign.target_audience.strip()) < 10:
        errors.append("Target audience description must be at least 10 characters")
    if not campaign.objectives:
        errors.append("At least one campaign objective is required")
    if not campaign.budget or campaign.budget < MIN_BUDGET:
        errors.append(f"Minimum budget is ${MIN_BUDGET}")
    elif campaign.budget > HIGH_BUDGET_WARNING:
        warnings.append("High budget campaigns require additional review time")
    if find_prohibited_terms(campaign):
        errors.append("Campaign contains prohibited content for mental health advertising")
    return errors, warnings


def review_snapshot(campaign: Campaign) -> dict[str, Any]:
    return {
        "budget": campaign.budget,
        "platform": campaign.platform.value,
        "targetAudience": campaign.target_audience,
        "objectives": list(campaign.objectives or []),
    }


def days_since(moment) -> int:
    return max(0, (utcnow() - as_utc(moment)).days)


def urgency_score(*, days_waiting: int, budget: float, platform: PlatformEnum) -> int:
    if days_waiting > 2:
        score = 3
    elif days_waiting > 1:
        score = 2
    else:
        score = 1
    if budget > HIGH_BUDGET_URGENCY:
        score += 2
    if platform == PlatformEnum.BOTH:
        score += 1
    return score


class ApprovalWorkflow:
    def __init__(
        self,
        session: Session,
        *,
        orchestrator: Optional[AdsOrchestrator] = None,
        notify: Optional[Notifier] = None,
    ) -> None:
        self.session = session
        self.orchestrator = orchestrator
        self.notify = notify or _drop_notification
        self.approvals = CampaignApprovalsRepository(session)
        self.campaigns = CampaignsRepository(session)
        self.users = UsersRepository(session)

    def _notify_owner(self, campaign: Campaign, build: Callable[..., EmailMessage], **kwargs: Any) -> None:
        owner = self.users.get(campaign.user_id)
        if owner is None:
            return
        self.notify(
            build(
                to=owner.email,
                user_name=owner.name,
                campaign_name=campaign.name,
                campaign_id=campaign.id,
                **kwargs,
            )
        )

    def _require_orchestrator(self) -> AdsOrchestrator:
        if self.orchestrator is None:
            self.orchestrator = AdsOrchestrator()
        return self.orchestrator

    def submit(self, campaign: Campaign, actor: AuthContext) -> SubmissionResult:
        if self.approvals.get_pending(campaign.id) is not None:
            raise ConflictError("Campaign already has a pending approval", code="APPROVAL_PENDING")
        lifecycle.ensure_transition(campaign.status, CampaignStatusEnum.PENDING, lifecycle.SUBMIT)

        errors, warnings = validate_campaign_for_approval(campaign)
        if errors:
            raise ValidationError(
                "Campaign is not ready for approval",
                details={"errors": errors, "warnings": warnings},
            )

        approval = self.approvals.create_pending(
            campaign_id=campaign.id,
            user_id=actor.id,
            review_data=review_snapshot(campaign),
        )
        campaign.status = CampaignStatusEnum.PENDING
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Campaign already has a pending approval", code="APPROVAL_PENDING") from exc
        self.session.refresh(approval)
        self.session.refresh(campaign)

        logger.info("Campaign submitted for approval", extra={"campaign_id": campaign.id, "approval_id": approval.id})
        self._notify_owner(campaign, campaign_submitted_email)
        return SubmissionResult(campaign=campaign, approval=approval, warnings=warnings)

    def _pending_review(self, campaign: Campaign) -> CampaignApproval:
        if campaign.status != CampaignStatusEnum.PENDING:
            raise ValidationError(
                "Campaign must be pending approval",
                details={"currentStatus": campaign.status.value},
            )
        approval = self.approvals.get_pending(campaign.id)
        if approval is None:
            raise NotFoundError("Pending approval")
        return approval

    async def approve(
        self,
        campaign: Campaign,
        reviewer: AuthContext,
        *,
        notes: Optional[str] = None,
        options: Optional[LaunchOptions] = None,
    ) -> LaunchResult:
        options = options or LaunchOptions()
        approval = self._pending_review(campaign)

        approval.status = ApprovalStatusEnum.APPROVED
        approval.reviewer_id = reviewer.id
        approval.reviewed_at = utcnow()
        approval.review_notes = notes
        approval.launch_options = options.as_dict()
        self.session.commit()
        logger.info(
            "Campaign approved",
            extra={"campaign_id": campaign.id, "approval_id": approval.id, "reviewer_id": reviewer.id},
        )

        result = await self._launch(campaign, approval, options)
        self._notify_owner(campaign, campaign_approved_email, activated=result.activated, notes=notes)
        return result

    async def retry_launch(self, campaign: Campaign, actor: AuthContext) -> LaunchResult:
        if campaign.status != CampaignStatusEnum.PENDING:
            raise ValidationError(
                "Only pending campaigns can be relaunched",
                details={"currentStatus": campaign.status.value},
            )
        approval = self.approvals.get_latest(campaign.id)
        if approval is None or approval.status != ApprovalStatusEnum.APPROVED:
            raise ValidationError("Campaign has no approved review to launch")
        stored = approval.launch_options or {}
        options = LaunchOptions(
            use_lead_gen=bool(stored.get("useLeadGen")),
            use_psychology_targeting=bool(stored.get("usePsychologyTargeting")),
        )
        logger.info("Retrying campaign launch", extra={"campaign_id": campaign.id, "actor_id": actor.id})
        result = await self._launch(campaign, approval, options)
        if result.activated:
            self._notify_owner(campaign, campaign_approved_email, activated=True, notes=approval.review_notes)
        return result

    async def _launch(self, campaign: Campaign, approval: CampaignApproval, options: LaunchOptions) -> LaunchResult:
        push = await self._require_orchestrator().launch(campaign, options)

        apply_platform_ids(campaign, push)
        approval.platform_results = push.as_dict()
        if push.all_succeeded:
            lifecycle.ensure_transition(campaign.status, CampaignStatusEnum.ACTIVE, lifecycle.LAUNCH)
            campaign.status = CampaignStatusEnum.ACTIVE
        self.session.commit()
        self.session.refresh(campaign)
        self.session.refresh(approval)

        if push.all_succeeded:
            logger.info("Campaign launched", extra={"campaign_id": campaign.id, "platforms": list(push.as_dict())})
        else:
            logger.warning(
                "Campaign launch incomplete",
                extra={"campaign_id": campaign.id, "platform_results": push.as_dict()},
            )
        return LaunchResult(campaign=campaign, approval=approval, push=push)

    def reject(
        self,
        campaign: Campaign,
        reviewer: AuthContext,
        *,
        feedback: str,
        reasons: Optional[list[str]] = None,
        suggested_changes: Optional[list[str]] = None,
        needs_changes: bool = True,
    ) -> tuple[Campaign, CampaignApproval]:
        approval = self._pending_review(campaign)
        if needs_changes:
            target, action, decision = CampaignStatusEnum.DRAFT, lifecycle.REQUEST_CHANGES, ApprovalStatusEnum.NEEDS_CHANGES
        else:
            target, action, decision = CampaignStatusEnum.CANCELLED, lifecycle.REJECT, ApprovalStatusEnum.REJECTED
        lifecycle.ensure_transition(campaign.status, target, action)

        approval.status = decision
        approval.reviewer_id = reviewer.id
        approval.reviewed_at = utcnow()
        approval.review_notes = feedback
        approval.rejection_reasons = list(reasons or [])
        approval.suggested_changes = list(suggested_changes or [])
        campaign.status = target
        self.session.commit()
        self.session.refresh(campaign)
        self.session.refresh(approval)

        logger.info(
            "Campaign review resolved",
            extra={"campaign_id": campaign.id, "approval_id": approval.id, "decision": decision.value},
        )
        self._notify_owner(
            campaign,
            campaign_rejected_email,
            feedback=feedback,
            needs_changes=needs_changes,
            suggested_changes=approval.suggested_changes,
        )
        return campaign, approval

    def history(self, campaign: Campaign) -> tuple[list[CampaignApproval], str]:
        approvals = self.approvals.history(campaign.id)
        current = approvals[0].status.value if approvals else "DRAFT"
        return approvals, current

    def pending_queue(self, *, priority: str, limit: int, offset: int) -> tuple[list[dict[str, Any]], int]:
        rows, total = self.approvals.list_pending_queue(priority=priority, limit=limit, offset=offset)
        items = []
        for approval, campaign in rows:
            waiting = days_since(approval.submitted_at)
            items.append(
                {
                    "approval": approval,
                    "campaign": campaign,
                    "daysSinceSubmission": waiting,
                    "urgencyScore": urgency_score(
                        days_waiting=waiting, budget=campaign.budget, platform=campaign.platform
                    ),
                }
            )
        return items, total

    def statistics(self, days: int) -> dict[str, Any]:
        since = utcnow() - timedelta(days=days)
        approvals = self.approvals.list_since(since)
        counts = {status.value: 0 for status in ApprovalStatusEnum}
        approval_hours: list[float] = []
        for approval in approvals:
            counts[approval.status.value] += 1
            if approval.status == ApprovalStatusEnum.APPROVED and approval.reviewed_at:
                delta = as_utc(approval.reviewed_at) - as_utc(approval.submitted_at)
                approval_hours.append(delta.total_seconds() / 3600)
        total = len(approvals)
        _, pending_campaigns = self.campaigns.list(status=CampaignStatusEnum.PENDING, limit=1)
        return {
            "timeframeDays": days,
            "totalSubmissions": total,
            "totalApproved": counts[ApprovalStatusEnum.APPROVED.value],
            "totalRejected": counts[ApprovalStatusEnum.REJECTED.value],
            "totalNeedsChanges": counts[ApprovalStatusEnum.NEEDS_CHANGES.value],
            "pendingReview": counts[ApprovalStatusEnum.PENDING_REVIEW.value],
            "pendingCampaigns": pending_campaigns,
            "approvalRate": calculate_percentage(counts[ApprovalStatusEnum.APPROVED.value], total),
            "averageApprovalHours": round_2(sum(approval_hours) / len(approval_hours)) if approval_hours else 0,
        }

    async def bulk_approve(
        self,
        campaign_ids: list[str],
        reviewer: AuthContext,
        *,
        notes: Optional[str] = None,
        options: Optional[LaunchOptions] = None,
    ) -> dict[str, Any]:
        results: list[dict[str, Any]] = []
        for campaign_id in campaign_ids:
            try:
                campaign = self.campaigns.get(campaign_id)
                if campaign is None:
                    raise NotFoundError("Campaign")
                launch = await self.approve(campaign, reviewer, notes=notes, options=options)
            except AppError as exc:
                results.append({"campaignId": campaign_id, "success": False, "error": exc.message})
                continue
            except SQLAlchemyError as exc:
                self.session.rollback()
                logger.exception("Bulk approval item failed", extra={"campaign_id": campaign_id})
                results.append({"campaignId": campaign_id, "success": False, "error": exc.__class__.__name__})
                continue
            results.append(
                {
                    "campaignId": campaign_id,
                    "success": True,
                    "activated": launch.activated,
                    "message": (
                        "Campaign approved and launched successfully"
                        if launch.activated
                        else "Campaign approved with some platform errors"
                    ),
                    "platformResults": launch.push.as_dict(),
                }
            )
        successful = sum(1 for item in results if item["success"])
        return {
            "results": results,
            "summary": {
                "total": len(results),
                "successful": successful,
                "failed": len(results) - successful,
                "activated": sum(1 for item in results if item.get("activated")),
            },
        }


def average_wait_hours(items: list[dict[str, Any]]) -> float:
    if not items:
        return 0
    return round_2(sum(item["daysSinceSubmission"] for item in items) / len(items) * 24)
