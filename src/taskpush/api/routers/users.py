"""Routes for listing users and managing the caller's device tokens."""

from __future__ import annotations

from fastapi import APIRouter

from ...deps import CurrentUserDependency, DatabaseSessionDependency
from ...schemas import (
    DeviceTokenRequest,
    MessageResponse,
    RemoveTokenRequest,
    UserListResponse,
    UserPublic,
)
from ...services import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "/device-token",
    response_model=MessageResponse,
    summary="Register a device push token for the caller",
)
async def save_device_token(
    payload: DeviceTokenRequest,
    session: DatabaseSessionDependency,
    current_user: CurrentUserDependency,
) -> MessageResponse:
    added = await UserService(session).register_device_token(
        current_user.id,
        payload.fcm_token,
        payload.platform,
    )
    return MessageResponse(msg="Token saved" if added else "Token already registered")


@router.get("", response_model=UserListResponse, summary="List users available for assignment")
async def list_users(
    session: DatabaseSessionDependency,
    current_user: CurrentUserDependency,
) -> UserListResponse:
    users = await UserService(session).list_users()
    return UserListResponse(users=[UserPublic.model_validate(user) for user in users])


@router.post(
    "/remove-token",
    response_model=MessageResponse,
    summary="Remove one of the caller's device push tokens",
)
async def remove_device_token(
    payload: RemoveTokenRequest,
    session: DatabaseSessionDependency,
    current_user: CurrentUserDependency,
) -> MessageResponse:
    removed = await UserService(session).remove_device_token(current_user.id, payload.fcm_token.strip())
    return MessageResponse(msg="Token removed" if removed else "Token not found")
