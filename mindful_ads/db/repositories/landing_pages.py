from typing import List, Optional

from sqlalchemy import select, update

from mindful_ads.db.models import LandingPage
from mindful_ads.db.repositories.base import Repository


class LandingPagesRepository(Repository):
    def list(self, *, user_id: Optional[str] = None, limit: int = 10, offset: int = 0) -> List[LandingPage]:
        stmt = select(LandingPage)
        if user_id:
            stmt = stmt.where(LandingPage.user_id == user_id)
        stmt = stmt.order_by(LandingPage.created_at.desc()).limit(limit).offset(offset)
        return list(self.session.scalars(stmt).all())

    def get(self, page_id: str) -> Optional[LandingPage]:
        return self.session.get(LandingPage, page_id)

    def get_by_slug(self, slug: str) -> Optional[LandingPage]:
        stmt = select(LandingPage).where(LandingPage.slug == slug)
        return self.session.scalars(stmt).first()

    def create(self, *, user_id: str, name: str, slug: str, template: str, **fields) -> LandingPage:
        page = LandingPage(user_id=user_id, name=name, slug=slug, template=template, **fields)
        return self.save(page)

    def update(self, page: LandingPage, **fields) -> LandingPage:
        return self.update_fields(page, **fields)

    def delete(self, page: LandingPage) -> None:
        self.session.delete(page)
        self.session.commit()

    def increment(self, page_id: str, *, visits: int = 0, conversions: int = 0) -> None:
        stmt = (
            update(LandingPage)
            .where(LandingPage.id == page_id)
            .values(
                visits=LandingPage.visits + visits,
                conversions=LandingPage.conversions + conversions,
            )
        )
        self.session.execute(stmt)
        self.session.commit()
