import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import AuthContext, get_current_user
from mindful_ads.auth.policies import require_admin
from mindful_ads.db.deps import get_session
from mindful_ads.db.enums import UserRoleEnum
from mindful_ads.db.repositories.security_events import SecurityEventsRepository
from mindful_ads.db.repositories.sessions import UserSessionsRepository
from mindful_ads.db.repositories.users import UsersRepository
from mindful_ads.errors import AuthorizationError, NotFoundError, ValidationError
from mindful_ads.schemas.auth import serialize_user
from mindful_ads.schemas.common import envelope
from mindful_ads.schemas.fields import Pagination, UserRole, get_pagination
from mindful_ads.schemas.users import AdminUserUpdateRequest, ProfileUpdateRequest

router = APIRouter(prefix="/users", tags=["users"])
admin_router = APIRouter(prefix="/admin/users", tags=["admin"])
logger = logging.getLogger("users.routes")


@router.put("/me")
def update_profile(
    payload: ProfileUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    users = UsersRepository(session)
    user = users.get(auth.id)
    if user is None:
        raise NotFoundError("User")

    fields: dict[str, object] = {}
    fields_set = payload.model_fields_set
    if "name" in fields_set:
        if payload.name is None:
            raise ValidationError("name cannot be empty")
        fields["name"] = payload.name
    for field in ("phone", "company", "bio"):
        if field in fields_set:
            fields[field] = getattr(payload, field)
    if fields:
        user = users.update_fields(user, **fields)
    return envelope(serialize_user(user), message="Profile updated successfully")


@admin_router.get("")
def list_users(
    role: UserRole | None = None,
    isActive: bool | None = None,
    search: str | None = Query(default=None, max_length=100),
    pagination: Pagination = Depends(get_pagination),
    _admin: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    items, total = UsersRepository(session).list(
        role=role,
        is_active=isActive,
        search=search,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return envelope([serialize_user(user) for user in items], pagination=pagination.meta(total))


@admin_router.patch("/{user_id}")
def update_user(
    user_id: str,
    payload: AdminUserUpdateRequest,
    admin: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    users = UsersRepository(session)
    user = users.get(user_id)
    if user is None:
        raise NotFoundError("User")

    fields: dict[str, object] = {}
    if payload.role is not None and payload.role != user.role:
        if admin.role != UserRoleEnum.SUPER_ADMIN:
            raise AuthorizationError("Only super admins can change user roles")
        fields["role"] = payload.role
    if payload.isActive is not None:
        if user.id == admin.id and not payload.isActive:
            raise ValidationError("You cannot deactivate your own account")
        fields["is_active"] = payload.isActive
    if fields:
        user = users.update_fields(user, **fields)
        if fields.get("is_active") is False:
            UserSessionsRepository(session).delete_for_user(user.id)
        SecurityEventsRepository(session).record(
            "user_updated_by_admin",
            user_id=user.id,
            details={
                "adminId": admin.id,
                "fields": sorted(fields),
                "role": user.role.value,
                "isActive": user.is_active,
            },
        )
    logger.info("User updated by admin", extra={"user_id": user.id, "admin_id": admin.id})
    return envelope(serialize_user(user), message="User updated successfully")
