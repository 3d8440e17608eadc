from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from mindful_ads.config import settings
from mindful_ads.db.models import CampaignApproval
from mindful_ads.schemas.fields import ApprovalStatus


class ApproveRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)
    useLeadGen: bool = False
    usePsychologyTargeting: bool = False


class RejectRequest(BaseModel):
    feedback: str = Field(min_length=10, max_length=2000)
    reasons: list[str] = Field(default_factory=list)
    suggestedChanges: list[str] = Field(default_factory=list)
    needsChanges: bool = True


class BulkApproveRequest(BaseModel):
    campaignIds: list[str] = Field(min_length=1, max_length=settings.BULK_APPROVE_MAX)
    approvalData: ApproveRequest = Field(default_factory=ApproveRequest)


PendingPriority = Literal["newest", "oldest", "high-budget"]


class ApprovalOut(BaseModel):
    id: str
    campaignId: str
    userId: str
    reviewerId: str | None = None
    status: ApprovalStatus
    submittedAt: datetime
    reviewedAt: datetime | None = None
    reviewData: dict[str, Any] = Field(default_factory=dict)
    reviewNotes: str | None = None
    rejectionReasons: list[str] = Field(default_factory=list)
    suggestedChanges: list[str] = Field(default_factory=list)
    launchOptions: dict[str, Any] = Field(default_factory=dict)
    platformResults: dict[str, Any] | None = None


def serialize_approval(approval: CampaignApproval) -> ApprovalOut:
    return ApprovalOut(
        id=approval.id,
        campaignId=approval.campaign_id,
        userId=approval.user_id,
        reviewerId=approval.reviewer_id,
        status=approval.status,
        submittedAt=approval.submitted_at,
        reviewedAt=approval.reviewed_at,
        reviewData=dict(approval.review_data or {}),
        reviewNotes=approval.review_notes,
        rejectionReasons=list(approval.rejection_reasons or []),
        suggestedChanges=list(approval.suggested_changes or []),
        launchOptions=dict(approval.launch_options or {}),
        platformResults=approval.platform_results,
    )
