import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select

from mindful_ads.db.models import UserSession, utcnow
from mindful_ads.db.repositories.base import Repository


def generate_session_token() -> str:
    return secrets.token_hex(64)


class UserSessionsRepository(Repository):
    def create(
        self,
        *,
        user_id: str,
        ttl: timedelta,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> UserSession:
        now = utcnow()
        user_session = UserSession(
            user_id=user_id,
            session_token=generate_session_token(),
            expires_at=now + ttl,
            ip_address=ip_address,
            user_agent=user_agent,
            last_activity_at=now,
        )
        return self.save(user_session)

    def get_by_token(self, session_token: str) -> Optional[UserSession]:
        stmt = select(UserSession).where(UserSession.session_token == session_token)
        return self.session.scalars(stmt).first()

    def touch(self, user_session: UserSession) -> None:
        user_session.last_activity_at = utcnow()
        self.session.commit()

    def delete(self, session_id: str) -> bool:
        result = self.session.execute(delete(UserSession).where(UserSession.id == session_id))
        self.session.commit()
        return bool(result.rowcount)

    def delete_for_user(self, user_id: str) -> int:
        result = self.session.execute(delete(UserSession).where(UserSession.user_id == user_id))
        self.session.commit()
        return int(result.rowcount or 0)
