from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select

from mindful_ads.db.enums import LeadStatusEnum
from mindful_ads.db.models import Lead
from mindful_ads.db.repositories.base import Repository


class LeadsRepository(Repository):
    def list(
        self,
        *,
        user_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
        status: Optional[LeadStatusEnum] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Lead], int]:
        stmt = select(Lead)
        if user_id:
            stmt = stmt.where(Lead.user_id == user_id)
        if campaign_id:
            stmt = stmt.where(Lead.campaign_id == campaign_id)
        if status:
            stmt = stmt.where(Lead.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Lead.name).like(pattern),
                    func.lower(Lead.email).like(pattern),
                    Lead.phone.like(pattern),
                )
            )
        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = stmt.order_by(Lead.created_at.desc()).limit(limit).offset(offset)
        return list(self.session.scalars(stmt).all()), int(total)

    def get(self, lead_id: str) -> Optional[Lead]:
        return self.session.get(Lead, lead_id)

    def create(self, *, user_id: str, name: str, email: str, source: str, **fields) -> Lead:
        lead = Lead(user_id=user_id, name=name, email=email.strip().lower(), source=source, **fields)
        return self.save(lead)

    def update(self, lead: Lead, **fields) -> Lead:
        return self.update_fields(lead, **fields)

    def delete(self, lead: Lead) -> None:
        self.session.delete(lead)
        self.session.commit()

    def count(
        self,
        *,
        user_id: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> int:
        stmt = select(func.count(Lead.id))
        if user_id:
            stmt = stmt.where(Lead.user_id == user_id)
        if created_from:
            stmt = stmt.where(Lead.created_at >= created_from)
        if created_to:
            stmt = stmt.where(Lead.created_at < created_to)
        return int(self.session.scalar(stmt) or 0)

    def grouped(self, column: str, *, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Lead count and summed value per distinct ``status``, ``source`` or ``campaign_id``."""
        attr = getattr(Lead, column)
        stmt = (
            select(attr, func.count(Lead.id), func.coalesce(func.sum(Lead.value), 0.0))
            .where(attr.is_not(None))
            .group_by(attr)
            .order_by(func.count(Lead.id).desc())
        )
        if user_id:
            stmt = stmt.where(Lead.user_id == user_id)
        return [
            {"key": getattr(key, "value", key), "count": int(count), "value": float(value)}
            for key, count, value in self.session.execute(stmt).all()
        ]

    def recent(self, user_id: str, limit: int = 5) -> List[Lead]:
        stmt = select(Lead).where(Lead.user_id == user_id).order_by(Lead.created_at.desc()).limit(limit)
        return list(self.session.scalars(stmt).all())
