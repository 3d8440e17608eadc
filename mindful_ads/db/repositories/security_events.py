import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import func, select

from mindful_ads.db.models import SecurityEvent
from mindful_ads.db.repositories.base import Repository

audit_logger = logging.getLogger("security.audit")


class SecurityEventsRepository(Repository):
    def record(
        self,
        event_type: str,
        *,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> SecurityEvent:
        audit_logger.warning(
            "Security event",
            extra={"event_type": event_type, "user_id": user_id, "ip_address": ip_address, "details": details},
        )
        event = SecurityEvent(
            event_type=event_type,
            user_id=user_id,
            ip_address=ip_address,
            metadata_json=details or {},
        )
        return self.save(event)

    def list(
        self,
        *,
        event_type: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[SecurityEvent], int]:
        stmt = select(SecurityEvent)
        if event_type:
            stmt = stmt.where(SecurityEvent.event_type == event_type)
        if user_id:
            stmt = stmt.where(SecurityEvent.user_id == user_id)
        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = stmt.order_by(SecurityEvent.created_at.desc()).limit(limit).offset(offset)
        return list(self.session.scalars(stmt).all()), int(total)
