from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.audit.models import AuditAction, AuditEntry
from helpdesk.dependencies.auth import CurrentUser
from helpdesk.dependencies.services import OrganizationServiceDep
from helpdesk.orgs.models import Member, OrganizationSummary
from helpdesk.orgs.policy import Role

router = APIRouter(prefix="/orgs", tags=["organizations"])


class OrganizationCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class OrganizationUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class MemberCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    role: Role = Role.AGENT


class MemberRoleRequest(BaseModel):
    role: Role


class OrganizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime


class OrganizationSummaryResponse(OrganizationResponse):
    role: Role
    joined_at: datetime


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    membership_id: str
    user_id: str
    email: str
    name: str
    role: Role
    joined_at: datetime


class MembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    organization_id: str
    role: Role
    joined_at: datetime


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    user_id: str
    action: AuditAction
    ticket_id: str | None
    metadata: dict[str, Any]
    created_at: datetime


class AuditPageResponse(BaseModel):
    items: list[AuditEntryResponse]
    page: int
    limit: int
    total: int
    pages: int


def _to_summary_response(summary: OrganizationSummary) -> OrganizationSummaryResponse:
    organization = summary.organization
    return OrganizationSummaryResponse(
        id=organization.id,
        name=organization.name,
        slug=organization.slug,
        created_at=organization.created_at,
        updated_at=organization.updated_at,
        role=summary.role,
        joined_at=summary.joined_at,
    )


def _to_member_response(member: Member) -> MemberResponse:
    return MemberResponse.model_validate(member)


def _to_audit_response(entry: AuditEntry) -> AuditEntryResponse:
    return AuditEntryResponse.model_validate(entry)


@router.get("", response_model=list[OrganizationSummaryResponse])
async def list_organizations(user: CurrentUser, service: OrganizationServiceDep) -> list[OrganizationSummaryResponse]:
    summaries = await service.list_organizations(actor_id=user.id)
    return [_to_summary_response(summary) for summary in summaries]


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    payload: OrganizationCreateRequest,
    user: CurrentUser,
    service: OrganizationServiceDep,
) -> OrganizationResponse:
    organization = await service.create_organization(actor_id=user.id, name=payload.name)
    return OrganizationResponse.model_validate(organization)


@router.get("/{org_id}", response_model=OrganizationResponse)
async def get_organization(org_id: str, user: CurrentUser, service: OrganizationServiceDep) -> OrganizationResponse:
    organization = await service.get_organization(actor_id=user.id, organization_id=org_id)
    return OrganizationResponse.model_validate(organization)


@router.patch("/{org_id}", response_model=OrganizationResponse)
async def update_organization(
    org_id: str,
    payload: OrganizationUpdateRequest,
    user: CurrentUser,
    service: OrganizationServiceDep,
) -> OrganizationResponse:
    organization = await service.update_organization(actor_id=user.id, organization_id=org_id, name=payload.name)
    return OrganizationResponse.model_validate(organization)


@router.get("/{org_id}/members", response_model=list[MemberResponse])
async def list_members(org_id: str, user: CurrentUser, service: OrganizationServiceDep) -> list[MemberResponse]:
    members = await service.list_members(actor_id=user.id, organization_id=org_id)
    return [_to_member_response(member) for member in members]


@router.post("/{org_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    org_id: str,
    payload: MemberCreateRequest,
    user: CurrentUser,
    service: OrganizationServiceDep,
) -> MemberResponse:
    member = await service.add_member(
        actor_id=user.id,
        organization_id=org_id,
        email=payload.email,
        role=payload.role,
    )
    return _to_member_response(member)


@router.patch("/{org_id}/members/{user_id}", response_model=MembershipResponse)
async def change_member_role(
    org_id: str,
    user_id: str,
    payload: MemberRoleRequest,
    user: CurrentUser,
    service: OrganizationServiceDep,
) -> MembershipResponse:
    membership = await service.change_member_role(
        actor_id=user.id,
        organization_id=org_id,
        user_id=user_id,
        role=payload.role,
    )
    return MembershipResponse.model_validate(membership)


@router.delete("/{org_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(org_id: str, user_id: str, user: CurrentUser, service: OrganizationServiceDep) -> Response:
    await service.remove_member(actor_id=user.id, organization_id=org_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{org_id}/audit", response_model=AuditPageResponse)
async def list_audit_log(
    org_id: str,
    user: CurrentUser,
    service: OrganizationServiceDep,
    ticket_id: str | None = Query(default=None),
    page: int = Query(default=1),
    limit: int = Query(default=50),
) -> AuditPageResponse:
    result = await service.list_audit_log(
        actor_id=user.id,
        organization_id=org_id,
        ticket_id=ticket_id,
        page=page,
        limit=limit,
    )
    return AuditPageResponse(
        items=[_to_audit_response(entry) for entry in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        pages=result.pages,
    )
