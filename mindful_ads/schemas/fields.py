"""Reusable field types shared by the request schemas."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Query
from pydantic import AfterValidator, BeforeValidator, EmailStr, StringConstraints

from mindful_ads.db.enums import (
    ApprovalStatusEnum as ApprovalStatus,
    CampaignStatusEnum as CampaignStatus,
    LeadStatusEnum as LeadStatus,
    PlatformEnum as Platform,
    UserRoleEnum as UserRole,
)

_PHONE_FORMATTING = re.compile(r"[\s\-().]")
_PHONE_DIGITS = re.compile(r"^\+?\d+$")


def _strip(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


def _lower(value: str) -> str:
    return value.lower()


def validate_phone(value: str) -> str:
    """Accept 7-15 digits once spaces, dashes, dots and parentheses are removed.

    International numbers may start with ``+`` and then need at least 8 digits.
    The caller's formatting is kept as entered.
    """
    compact = _PHONE_FORMATTING.sub("", value)
    if not _PHONE_DIGITS.match(compact):
        raise ValueError("Phone number may only contain digits, spaces, dashes, dots, parentheses and a leading +")
    digits = compact.lstrip("+")
    if len(digits) < 7 or len(digits) > 15:
        raise ValueError("Phone number must contain between 7 and 15 digits")
    if compact.startswith("+") and len(digits) < 8:
        raise ValueError("International phone numbers need at least 8 digits")
    return value


Email = Annotated[EmailStr, BeforeValidator(_strip), AfterValidator(_lower)]
Phone = Annotated[str, BeforeValidator(_strip), AfterValidator(validate_phone)]
Password = Annotated[str, StringConstraints(min_length=6, max_length=128)]
PersonName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]


@dataclass
class Pagination:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> dict[str, int]:
        pages = (total + self.limit - 1) // self.limit if total else 0
        return {"page": self.page, "limit": self.limit, "total": total, "pages": pages}


def get_pagination(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> Pagination:
    return Pagination(page=page, limit=limit)


__all__ = [
    "ApprovalStatus",
    "CampaignStatus",
    "Email",
    "LeadStatus",
    "Pagination",
    "Password",
    "PersonName",
    "Phone",
    "Platform",
    "UserRole",
    "get_pagination",
    "validate_phone",
]
