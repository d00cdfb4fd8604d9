from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from helpdesk.accounts.models import User
from helpdesk.core.errors import Forbidden, InternalError, InvalidTransitionError, TicketNotFoundError
from helpdesk.dependencies.auth import get_current_user
from helpdesk.dependencies.services import get_account_service, get_ticket_service
from helpdesk.main import create_app
from helpdesk.tickets.models import UNSET, Ticket, TicketPage
from helpdesk.tickets.state import TicketStatus

ORG_ID = "org-1"


def _make_user() -> User:
    return User(id="user-1", email="agent@acme.test", name="Agent", created_at=datetime.now(timezone.utc))


def _make_ticket(*, status: TicketStatus = TicketStatus.OPEN) -> Ticket:
    now = datetime.now(timezone.utc)
    return Ticket(
        id=str(uuid4()),
        organization_id=ORG_ID,
        title="Printer jam",
        description="Tray 2 is stuck",
        status=status,
        requires_approval=False,
        creator_id="user-1",
        assignee_id=None,
        approved_by_id=None,
        approved_at=None,
        created_at=now,
        updated_at=now,
        resolved_at=None,
        closed_at=None,
    )


@pytest.fixture
def ticket_client():
    app = create_app(use_lifespan=False)
    service = AsyncMock()
    user = _make_user()

    async def override_service():
        return service

    app.dependency_overrides[get_ticket_service] = override_service
    app.dependency_overrides[get_current_user] = lambda: user

    client = TestClient(app)
    try:
        yield client, service
    finally:
        app.dependency_overrides.clear()


def test_create_ticket_endpoint_returns_created(ticket_client):
    client, service = ticket_client
    ticket = _make_ticket()
    service.create_ticket = AsyncMock(return_value=ticket)

    response = client.post(f"/orgs/{ORG_ID}/tickets", json={"title": "Printer jam", "description": "Tray 2 is stuck"})

    assert response.status_code == 201
    body = response.json()
    assert body["id"] == ticket.id
    assert body["status"] == "OPEN"
    service.create_ticket.assert_awaited_once_with(
        actor_id="user-1",
        organization_id=ORG_ID,
        title="Printer jam",
        description="Tray 2 is stuck",
        assignee_id=None,
        requires_approval=False,
    )


def test_create_ticket_rejects_missing_title(ticket_client):
    client, service = ticket_client

    response = client.post(f"/orgs/{ORG_ID}/tickets", json={"description": "No title"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    service.create_ticket.assert_not_called()


def test_list_tickets_endpoint_returns_pagination(ticket_client):
    client, service = ticket_client
    tickets = [_make_ticket(status=TicketStatus.IN_PROGRESS) for _ in range(2)]
    service.list_tickets = AsyncMock(return_value=TicketPage(items=tickets, page=2, limit=2, total=5, pages=3))

    response = client.get(
        f"/orgs/{ORG_ID}/tickets", params={"status": "IN_PROGRESS", "page": 2, "limit": 2, "assignee_id": "user-2"}
    )

    assert response.status_code == 200
    body = response.json()
    assert len(body["items"]) == 2
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}
    kwargs = service.list_tickets.await_args.kwargs
    assert kwargs["filters"].status is TicketStatus.IN_PROGRESS
    assert kwargs["filters"].assignee_id == "user-2"
    assert kwargs["filters"].creator_id is None
    assert (kwargs["page"], kwargs["limit"]) == (2, 2)


def test_list_tickets_rejects_unknown_status(ticket_client):
    client, _ = ticket_client

    response = client.get(f"/orgs/{ORG_ID}/tickets", params={"status": "REJECTED"})

    assert response.status_code == 400


def test_get_ticket_not_found_renders_error_body(ticket_client):
    client, service = ticket_client
    service.get_ticket = AsyncMock(side_effect=TicketNotFoundError("Ticket not found"))

    response = client.get(f"/orgs/{ORG_ID}/tickets/missing")

    assert response.status_code == 404
    assert response.json() == {"error": {"code": "NOT_FOUND", "message": "Ticket not found"}}


def test_patch_distinguishes_null_assignee_from_omitted(ticket_client):
    client, service = ticket_client
    service.update_ticket = AsyncMock(return_value=_make_ticket())

    client.patch(f"/orgs/{ORG_ID}/tickets/t-1", json={"assignee_id": None})
    unassign = service.update_ticket.await_args.kwargs["patch"]

    client.patch(f"/orgs/{ORG_ID}/tickets/t-1", json={"status": "IN_PROGRESS"})
    status_only = service.update_ticket.await_args.kwargs["patch"]

    assert unassign.assignee_id is None
    assert status_only.assignee_id is UNSET
    assert status_only.status is TicketStatus.IN_PROGRESS


def test_patch_invalid_transition_returns_details(ticket_client):
    client, service = ticket_client
    service.update_ticket = AsyncMock(
        side_effect=InvalidTransitionError(
            "Invalid status transition from CLOSED to OPEN",
            details={"current_status": "CLOSED", "requested_status": "OPEN", "allowed_transitions": []},
        )
    )

    response = client.patch(f"/orgs/{ORG_ID}/tickets/t-1", json={"status": "OPEN"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["allowed_transitions"] == []


def test_forbidden_renders_403(ticket_client):
    client, service = ticket_client
    service.delete_ticket = AsyncMock(side_effect=Forbidden("Only admins can delete tickets"))

    response = client.delete(f"/orgs/{ORG_ID}/tickets/t-1")

    assert response.status_code == 403
    assert response.json()["error"] == {"code": "FORBIDDEN", "message": "Only admins can delete tickets"}


def test_delete_ticket_returns_no_content(ticket_client):
    client, service = ticket_client
    service.delete_ticket = AsyncMock(return_value=None)

    response = client.delete(f"/orgs/{ORG_ID}/tickets/t-1")

    assert response.status_code == 204
    assert response.content == b""


def test_request_id_is_echoed_or_generated(ticket_client):
    client, service = ticket_client
    service.get_ticket = AsyncMock(return_value=_make_ticket())

    echoed = client.get(f"/orgs/{ORG_ID}/tickets/t-1", headers={"X-Request-ID": "req-42"})
    generated = client.get(f"/orgs/{ORG_ID}/tickets/t-1")

    assert echoed.headers["X-Request-ID"] == "req-42"
    assert generated.headers["X-Request-ID"]


def test_internal_error_message_is_masked(ticket_client):
    client, service = ticket_client
    service.list_tickets = AsyncMock(side_effect=InternalError("Ticket store unavailable: pg at 10.0.0.7"))

    response = client.get(f"/orgs/{ORG_ID}/tickets")

    assert response.status_code == 500
    assert response.json() == {"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}}
    assert "10.0.0.7" not in response.text
    assert response.headers["X-Request-ID"]


def test_unconfigured_service_uses_error_envelope():
    app = create_app(use_lifespan=False)
    app.dependency_overrides[get_current_user] = _make_user

    response = TestClient(app).get(f"/orgs/{ORG_ID}/tickets")

    assert response.status_code == 503
    assert response.json() == {
        "error": {"code": "SERVICE_UNAVAILABLE", "message": "An unexpected error occurred"}
    }
    assert response.headers["X-Request-ID"]


def test_missing_token_is_unauthorized():
    app = create_app(use_lifespan=False)
    app.dependency_overrides[get_ticket_service] = lambda: AsyncMock()
    app.dependency_overrides[get_account_service] = lambda: AsyncMock()

    response = TestClient(app).get(f"/orgs/{ORG_ID}/tickets")

    assert response.status_code == 401
    assert response.json()["error"] == {"code": "UNAUTHORIZED", "message": "No token provided"}


def test_unexpected_error_is_masked():
    app = create_app(use_lifespan=False)
    service = AsyncMock()
    service.get_ticket = AsyncMock(side_effect=RuntimeError("database exploded"))
    app.dependency_overrides[get_ticket_service] = lambda: service
    app.dependency_overrides[get_current_user] = _make_user

    response = TestClient(app, raise_server_exceptions=False).get(f"/orgs/{ORG_ID}/tickets/t-1")

    assert response.status_code == 500
    assert response.json() == {"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}}
    assert "database exploded" not in response.text
