from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.dependencies.auth import CurrentUser
from helpdesk.dependencies.services import TicketServiceDep
from helpdesk.tickets.models import UNSET, Ticket, TicketFilters, TicketPatch
from helpdesk.tickets.state import TicketStatus

router = APIRouter(prefix="/orgs/{org_id}/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    assignee_id: str | None = None
    requires_approval: bool = False


class TicketUpdateRequest(BaseModel):
    """Partial update; an explicit ``"assignee_id": null`` unassigns the ticket."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    status: TicketStatus | None = None
    assignee_id: str | None = None
    requires_approval: bool | None = None

    def to_patch(self) -> TicketPatch:
        return TicketPatch(
            title=self.title,
            description=self.description,
            status=self.status,
            requires_approval=self.requires_approval,
            assignee_id=self.assignee_id if "assignee_id" in self.model_fields_set else UNSET,
        )


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    title: str
    description: str
    status: TicketStatus
    requires_approval: bool
    creator_id: str
    assignee_id: str | None
    approved_by_id: str | None
    approved_at: datetime | None
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None
    closed_at: datetime | None


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TicketListResponse(BaseModel):
    items: list[TicketResponse]
    pagination: PaginationResponse


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    org_id: str,
    payload: TicketCreateRequest,
    user: CurrentUser,
    service: TicketServiceDep,
) -> TicketResponse:
    ticket = await service.create_ticket(
        actor_id=user.id,
        organization_id=org_id,
        title=payload.title,
        description=payload.description,
        assignee_id=payload.assignee_id,
        requires_approval=payload.requires_approval,
    )
    return _to_response(ticket)


@router.get("", response_model=TicketListResponse)
async def list_tickets(
    org_id: str,
    user: CurrentUser,
    service: TicketServiceDep,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    assignee_id: str | None = Query(default=None),
    creator_id: str | None = Query(default=None),
    page: int = Query(default=1),
    limit: int = Query(default=10),
) -> TicketListResponse:
    result = await service.list_tickets(
        actor_id=user.id,
        organization_id=org_id,
        filters=TicketFilters(status=status_filter, assignee_id=assignee_id, creator_id=creator_id),
        page=page,
        limit=limit,
    )
    return TicketListResponse(
        items=[_to_response(ticket) for ticket in result.items],
        pagination=PaginationResponse(page=result.page, limit=result.limit, total=result.total, pages=result.pages),
    )


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(org_id: str, ticket_id: str, user: CurrentUser, service: TicketServiceDep) -> TicketResponse:
    ticket = await service.get_ticket(actor_id=user.id, organization_id=org_id, ticket_id=ticket_id)
    return _to_response(ticket)


@router.patch("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    org_id: str,
    ticket_id: str,
    payload: TicketUpdateRequest,
    user: CurrentUser,
    service: TicketServiceDep,
) -> TicketResponse:
    ticket = await service.update_ticket(
        actor_id=user.id,
        organization_id=org_id,
        ticket_id=ticket_id,
        patch=payload.to_patch(),
    )
    return _to_response(ticket)


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(org_id: str, ticket_id: str, user: CurrentUser, service: TicketServiceDep) -> Response:
    await service.delete_ticket(actor_id=user.id, organization_id=org_id, ticket_id=ticket_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
