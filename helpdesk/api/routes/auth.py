from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.accounts.models import User
from helpdesk.dependencies.auth import CurrentUser
from helpdesk.dependencies.services import AccountServiceDep
from helpdesk.api.routes.orgs import OrganizationResponse

router = APIRouter(prefix="/auth", tags=["auth"])

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class SignupRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=72)
    name: str = Field(..., min_length=1, max_length=255)
    org_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    created_at: datetime


class SessionResponse(BaseModel):
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class SignupResponse(SessionResponse):
    organization: OrganizationResponse


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


def _to_user_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(payload: SignupRequest, accounts: AccountServiceDep) -> SignupResponse:
    result = await accounts.signup(
        email=payload.email,
        password=payload.password,
        name=payload.name,
        organization_name=payload.org_name,
    )
    return SignupResponse(
        user=_to_user_response(result.user),
        organization=OrganizationResponse.model_validate(result.organization),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )


@router.post("/login", response_model=SessionResponse)
async def login(payload: LoginRequest, accounts: AccountServiceDep) -> SessionResponse:
    result = await accounts.login(email=payload.email, password=payload.password)
    return SessionResponse(
        user=_to_user_response(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(payload: RefreshRequest, accounts: AccountServiceDep) -> AccessTokenResponse:
    access_token = await accounts.refresh(payload.refresh_token)
    return AccessTokenResponse(access_token=access_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(payload: RefreshRequest, accounts: AccountServiceDep) -> Response:
    await accounts.logout(payload.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserResponse)
async def me(user: CurrentUser) -> UserResponse:
    return _to_user_response(user)
