from __future__ import annotations

from typing import Callable, Iterable

from fastapi import Depends
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import AuthContext, get_current_user
from mindful_ads.db.deps import get_session
from mindful_ads.db.enums import UserRoleEnum
from mindful_ads.db.models import Campaign
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.errors import AuthorizationError, NotFoundError

ADMIN_ROLES = frozenset({UserRoleEnum.ADMIN, UserRoleEnum.SUPER_ADMIN})


def is_authorized(role: UserRoleEnum, allowed_roles: Iterable[UserRoleEnum]) -> bool:
    return role in frozenset(allowed_roles)


def is_admin(auth: AuthContext) -> bool:
    return is_authorized(auth.role, ADMIN_ROLES)


def require_roles(*roles: UserRoleEnum) -> Callable[..., AuthContext]:
    allowed = frozenset(roles)

    def dependency(auth: AuthContext = Depends(get_current_user)) -> AuthContext:
        if not is_authorized(auth.role, allowed):
            raise AuthorizationError()
        return auth

    return dependency


require_admin = require_roles(UserRoleEnum.ADMIN, UserRoleEnum.SUPER_ADMIN)
require_super_admin = require_roles(UserRoleEnum.SUPER_ADMIN)


def ensure_owner(auth: AuthContext, owner_id: str) -> None:
    if is_admin(auth):
        return
    if owner_id != auth.id:
        raise AuthorizationError("You do not have access to this resource")


def owned_campaign(
    campaign_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Campaign:
    campaign = CampaignsRepository(session).get(campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign")
    ensure_owner(auth, campaign.user_id)
    return campaign
