"""Routes handling user authentication flows."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...core.security import GeneratedToken
from ...deps import DatabaseSessionDependency, SettingsDependency
from ...models import User
from ...schemas import AuthResponse, LoginRequest, RegisterRequest, UserPublic
from ...services import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(user: User, token: GeneratedToken) -> AuthResponse:
    return AuthResponse(
        token=token.token,
        expires_at=token.expires_at,
        user=UserPublic.model_validate(user),
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new member account",
)
async def register(
    payload: RegisterRequest,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
) -> AuthResponse:
    service = AuthService(session, settings)
    user = await service.register_user(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
    )
    return _auth_response(user, service.issue_token(user))


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Authenticate using email and password",
)
async def login(
    payload: LoginRequest,
    session: DatabaseSessionDependency,
    settings: SettingsDependency,
) -> AuthResponse:
    service = AuthService(session, settings)
    user = await service.authenticate_user(payload.email, payload.password)
    return _auth_response(user, service.issue_token(user))
