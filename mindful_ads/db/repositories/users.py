from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select, update

from mindful_ads.db.enums import UserRoleEnum
from mindful_ads.db.models import User, utcnow
from mindful_ads.db.repositories.base import Repository


class UsersRepository(Repository):
    def get(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.strip().lower())
        return self.session.scalars(stmt).first()

    def create(
        self,
        *,
        email: str,
        name: str,
        password_hash: str,
        role: UserRoleEnum = UserRoleEnum.CLIENT,
        **fields,
    ) -> User:
        user = User(
            email=email.strip().lower(),
            name=name,
            password_hash=password_hash,
            role=role,
            **fields,
        )
        return self.save(user)

    def list(
        self,
        *,
        role: Optional[UserRoleEnum] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[User], int]:
        stmt = select(User)
        if role is not None:
            stmt = stmt.where(User.role == role)
        if is_active is not None:
            stmt = stmt.where(User.is_active == is_active)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(func.lower(User.name).like(pattern) | func.lower(User.email).like(pattern))
        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = stmt.order_by(User.created_at.desc()).limit(limit).offset(offset)
        return list(self.session.scalars(stmt).all()), int(total)

    def touch_last_login(self, user_id: str, when: Optional[datetime] = None) -> None:
        stmt = update(User).where(User.id == user_id).values(last_login=when or utcnow())
        self.session.execute(stmt)
        self.session.commit()

    def count_by_role(self) -> Dict[str, Dict[str, int]]:
        stmt = select(User.role, User.is_active, func.count(User.id)).group_by(User.role, User.is_active)
        counts: Dict[str, Dict[str, int]] = {}
        for role, is_active, count in self.session.execute(stmt).all():
            bucket = counts.setdefault(role.value, {"total": 0, "active": 0})
            bucket["total"] += int(count)
            if is_active:
                bucket["active"] += int(count)
        return counts
