"""End-to-end flow through the HTTP surface against a real SQLite database."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from helpdesk.main import create_app, install_services

PASSWORD = "correct-horse-battery"


@pytest_asyncio.fixture
async def client(services):
    app = create_app(use_lifespan=False)
    install_services(app, services)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def _signup(client: httpx.AsyncClient, email: str, org_name: str) -> dict:
    response = await client.post(
        "/auth/signup",
        json={"email": email, "password": PASSWORD, "name": email.split("@")[0], "org_name": org_name},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _auth(session: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {session['access_token']}"}


@pytest.mark.asyncio
async def test_ticket_lifecycle_over_http(client):
    owner = await _signup(client, "owner@acme.test", "Acme Support")
    agent = await _signup(client, "agent@acme.test", "Agent Home")
    org_id = owner["organization"]["id"]

    added = await client.post(
        f"/orgs/{org_id}/members", json={"email": "agent@acme.test", "role": "AGENT"}, headers=_auth(owner)
    )
    assert added.status_code == 201

    created = await client.post(
        f"/orgs/{org_id}/tickets",
        json={"title": "Laptop replacement", "description": "Battery swollen", "requires_approval": True},
        headers=_auth(agent),
    )
    assert created.status_code == 201
    ticket = created.json()
    assert ticket["status"] == "OPEN"

    for target in ("PENDING_APPROVAL", "APPROVED", "IN_PROGRESS", "RESOLVED", "CLOSED"):
        response = await client.patch(
            f"/orgs/{org_id}/tickets/{ticket['id']}", json={"status": target}, headers=_auth(owner)
        )
        assert response.status_code == 200, response.text
        assert response.json()["status"] == target

    final = (await client.get(f"/orgs/{org_id}/tickets/{ticket['id']}", headers=_auth(agent))).json()
    assert final["approved_by_id"] == owner["user"]["id"]
    assert final["resolved_at"] is not None
    assert final["closed_at"] is not None

    reopened = await client.patch(
        f"/orgs/{org_id}/tickets/{ticket['id']}", json={"status": "OPEN"}, headers=_auth(owner)
    )
    assert reopened.status_code == 400
    assert reopened.json()["error"]["details"]["allowed_transitions"] == []

    audit = await client.get(f"/orgs/{org_id}/audit", params={"ticket_id": ticket["id"]}, headers=_auth(owner))
    assert audit.status_code == 200
    actions = {entry["action"] for entry in audit.json()["items"]}
    assert {"TICKET_CREATED", "TICKET_APPROVED", "STATUS_CHANGED"} <= actions

    forbidden = await client.get(f"/orgs/{org_id}/audit", headers=_auth(agent))
    assert forbidden.status_code == 403

    deleted = await client.delete(f"/orgs/{org_id}/tickets/{ticket['id']}", headers=_auth(owner))
    assert deleted.status_code == 204
    missing = await client.get(f"/orgs/{org_id}/tickets/{ticket['id']}", headers=_auth(owner))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_other_tenant_cannot_reach_tickets(client):
    acme = await _signup(client, "owner@acme.test", "Acme Support")
    globex = await _signup(client, "owner@globex.test", "Globex")
    acme_org = acme["organization"]["id"]

    created = await client.post(
        f"/orgs/{acme_org}/tickets", json={"title": "Secret", "description": "Internal"}, headers=_auth(acme)
    )
    ticket_id = created.json()["id"]

    listing = await client.get(f"/orgs/{acme_org}/tickets", headers=_auth(globex))
    assert listing.status_code == 403

    foreign = await client.get(f"/orgs/{globex['organization']['id']}/tickets/{ticket_id}", headers=_auth(globex))
    assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_session_endpoints(client):
    session = await _signup(client, "fay@example.test", "Fay Co")

    me = await client.get("/auth/me", headers=_auth(session))
    assert me.json()["email"] == "fay@example.test"

    login = await client.post("/auth/login", json={"email": "FAY@example.test", "password": PASSWORD})
    assert login.status_code == 200

    refreshed = await client.post("/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
    assert refreshed.status_code == 200

    await client.post("/auth/logout", json={"refresh_token": login.json()["refresh_token"]})
    revoked = await client.post("/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
    assert revoked.status_code == 401

    anonymous = await client.get("/orgs")
    assert anonymous.status_code == 401
