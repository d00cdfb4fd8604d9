from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from helpdesk.accounts.service import AccountService
from helpdesk.core.errors import ServiceUnavailable
from helpdesk.orgs.service import OrganizationService
from helpdesk.tickets.service import TicketService


def _service(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise ServiceUnavailable(f"{label} service is not configured")
    return service


async def get_account_service(request: Request) -> AccountService:
    return _service(request, "account_service", "Account")


async def get_organization_service(request: Request) -> OrganizationService:
    return _service(request, "organization_service", "Organization")


async def get_ticket_service(request: Request) -> TicketService:
    return _service(request, "ticket_service", "Ticket")


AccountServiceDep = Annotated[AccountService, Depends(get_account_service)]
OrganizationServiceDep = Annotated[OrganizationService, Depends(get_organization_service)]
TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
