from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select

from mindful_ads.db.enums import ApprovalStatusEnum, CampaignStatusEnum
from mindful_ads.db.models import Campaign, CampaignApproval, utcnow
from mindful_ads.db.repositories.base import Repository


class CampaignApprovalsRepository(Repository):
    def create_pending(
        self,
        *,
        campaign_id: str,
        user_id: str,
        review_data: dict,
    ) -> CampaignApproval:
        approval = CampaignApproval(
            campaign_id=campaign_id,
            user_id=user_id,
            status=ApprovalStatusEnum.PENDING_REVIEW,
            review_data=review_data,
        )
        self.session.add(approval)
        return approval

    def get_pending(self, campaign_id: str) -> Optional[CampaignApproval]:
        stmt = select(CampaignApproval).where(
            CampaignApproval.campaign_id == campaign_id,
            CampaignApproval.status == ApprovalStatusEnum.PENDING_REVIEW,
        )
        return self.session.scalars(stmt).first()

    def close_pending(
        self,
        campaign_id: str,
        *,
        status: ApprovalStatusEnum,
        reviewer_id: Optional[str],
        note: str,
    ) -> Optional[CampaignApproval]:
        """Resolve the open review without committing, so it lands with the caller's change."""
        approval = self.get_pending(campaign_id)
        if approval is None:
            return None
        approval.status = status
        approval.reviewer_id = reviewer_id
        approval.reviewed_at = utcnow()
        approval.review_notes = note
        return approval

    def get_latest(self, campaign_id: str) -> Optional[CampaignApproval]:
        stmt = (
            select(CampaignApproval)
            .where(CampaignApproval.campaign_id == campaign_id)
            .order_by(CampaignApproval.created_at.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def history(self, campaign_id: str) -> List[CampaignApproval]:
        stmt = (
            select(CampaignApproval)
            .where(CampaignApproval.campaign_id == campaign_id)
            .order_by(CampaignApproval.created_at.desc())
        )
        return list(self.session.scalars(stmt).all())

    def list_pending_queue(
        self,
        *,
        priority: str = "newest",
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Tuple[CampaignApproval, Campaign]], int]:
        stmt = (
            select(CampaignApproval, Campaign)
            .join(Campaign, Campaign.id == CampaignApproval.campaign_id)
            .where(
                CampaignApproval.status == ApprovalStatusEnum.PENDING_REVIEW,
                Campaign.status == CampaignStatusEnum.PENDING,
            )
        )
        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        if priority == "oldest":
            stmt = stmt.order_by(CampaignApproval.submitted_at.asc())
        elif priority == "high-budget":
            stmt = stmt.order_by(Campaign.budget.desc(), CampaignApproval.submitted_at.asc())
        else:
            stmt = stmt.order_by(CampaignApproval.submitted_at.desc())
        stmt = stmt.limit(limit).offset(offset)
        rows = [(approval, campaign) for approval, campaign in self.session.execute(stmt).all()]
        return rows, int(total)

    def list_since(self, since: datetime) -> List[CampaignApproval]:
        stmt = select(CampaignApproval).where(CampaignApproval.submitted_at >= since)
        return list(self.session.scalars(stmt).all())
