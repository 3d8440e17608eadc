from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from mindful_ads.schemas.fields import PersonName, Phone, UserRole


class ProfileUpdateRequest(BaseModel):
    name: PersonName | None = None
    phone: Phone | None = None
    company: str | None = Field(default=None, max_length=100)
    bio: str | None = Field(default=None, max_length=500)


class AdminUserUpdateRequest(BaseModel):
    isActive: bool | None = None
    role: UserRole | None = None

    @model_validator(mode="after")
    def validate_not_empty(self) -> "AdminUserUpdateRequest":
        if self.isActive is None and self.role is None:
            raise ValueError("At least one of isActive or role is required")
        return self
