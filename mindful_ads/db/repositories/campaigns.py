from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select, update

from mindful_ads.db.enums import CampaignStatusEnum, PlatformEnum
from mindful_ads.db.models import Campaign
from mindful_ads.db.repositories.base import Repository


class CampaignsRepository(Repository):
    def list(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[CampaignStatusEnum] = None,
        platform: Optional[PlatformEnum] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        stmt = select(Campaign)
        if user_id:
            stmt = stmt.where(Campaign.user_id == user_id)
        if status:
            stmt = stmt.where(Campaign.status == status)
        if platform:
            stmt = stmt.where(Campaign.platform == platform)
        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = stmt.order_by(Campaign.created_at.desc()).limit(limit).offset(offset)
        return list(self.session.scalars(stmt).all()), int(total)

    def get(self, campaign_id: str) -> Optional[Campaign]:
        return self.session.get(Campaign, campaign_id)

    def create(self, *, user_id: str, name: str, **fields) -> Campaign:
        campaign = Campaign(user_id=user_id, name=name, **fields)
        return self.save(campaign)

    def update(self, campaign: Campaign, **fields) -> Campaign:
        return self.update_fields(campaign, **fields)

    def delete(self, campaign: Campaign) -> None:
        self.session.delete(campaign)
        self.session.commit()

    def increment_leads(self, campaign_id: str, amount: int = 1) -> None:
        stmt = update(Campaign).where(Campaign.id == campaign_id).values(leads=Campaign.leads + amount)
        self.session.execute(stmt)
        self.session.commit()

    def count(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[CampaignStatusEnum] = None,
        created_since: Optional[datetime] = None,
    ) -> int:
        stmt = select(func.count(Campaign.id))
        if user_id:
            stmt = stmt.where(Campaign.user_id == user_id)
        if status:
            stmt = stmt.where(Campaign.status == status)
        if created_since:
            stmt = stmt.where(Campaign.created_at >= created_since)
        return int(self.session.scalar(stmt) or 0)

    def count_by(self, column: str, *, user_id: Optional[str] = None) -> Dict[str, int]:
        """Campaign counts keyed by the value of ``status`` or ``platform``."""
        attr = getattr(Campaign, column)
        stmt = select(attr, func.count(Campaign.id)).group_by(attr)
        if user_id:
            stmt = stmt.where(Campaign.user_id == user_id)
        return {key.value: int(count) for key, count in self.session.execute(stmt).all()}

    def totals(
        self,
        *,
        user_id: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> Dict[str, float]:
        stmt = select(
            func.coalesce(func.sum(Campaign.impressions), 0),
            func.coalesce(func.sum(Campaign.clicks), 0),
            func.coalesce(func.sum(Campaign.conversions), 0),
            func.coalesce(func.sum(Campaign.cost), 0.0),
            func.coalesce(func.sum(Campaign.leads), 0),
            func.coalesce(func.sum(Campaign.budget), 0.0),
        )
        if user_id:
            stmt = stmt.where(Campaign.user_id == user_id)
        if created_from:
            stmt = stmt.where(Campaign.created_at >= created_from)
        if created_to:
            stmt = stmt.where(Campaign.created_at <= created_to)
        impressions, clicks, conversions, cost, leads, budget = self.session.execute(stmt).one()
        return {
            "impressions": int(impressions),
            "clicks": int(clicks),
            "conversions": int(conversions),
            "cost": float(cost),
            "leads": int(leads),
            "budget": float(budget),
        }

    def for_owner(self, user_id: str, *, campaign_id: Optional[str] = None) -> List[Campaign]:
        stmt = select(Campaign).where(Campaign.user_id == user_id)
        if campaign_id:
            stmt = stmt.where(Campaign.id == campaign_id)
        return list(self.session.scalars(stmt.order_by(Campaign.created_at.desc())).all())

    def recently_updated(self, user_id: str, limit: int = 5) -> List[Campaign]:
        stmt = select(Campaign).where(Campaign.user_id == user_id).order_by(Campaign.updated_at.desc()).limit(limit)
        return list(self.session.scalars(stmt).all())

    def names(self, campaign_ids: List[str]) -> Dict[str, str]:
        if not campaign_ids:
            return {}
        stmt = select(Campaign.id, Campaign.name).where(Campaign.id.in_(campaign_ids))
        return {campaign_id: name for campaign_id, name in self.session.execute(stmt).all()}
