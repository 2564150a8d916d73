"""User-facing Pydantic schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models import UserRole


class UserPublic(BaseModel):
    """Minimal public representation of a user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr
    role: UserRole


class UserListResponse(BaseModel):
    users: list[UserPublic]


class DeviceTokenRequest(BaseModel):
    """Registration of the caller's device push token."""

    model_config = ConfigDict(populate_by_name=True)

    fcm_token: str = Field(alias="fcmToken", min_length=1, max_length=512)
    platform: str | None = Field(default=None, max_length=32)

    @field_validator("fcm_token")
    @classmethod
    def _strip_token(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("fcmToken must not be blank")
        return stripped


class RemoveTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fcm_token: str = Field(alias="fcmToken", min_length=1, max_length=512)


__all__ = ["DeviceTokenRequest", "RemoveTokenRequest", "UserListResponse", "UserPublic"]
