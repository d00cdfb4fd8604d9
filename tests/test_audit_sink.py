from __future__ import annotations

import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlmodel import select

from helpdesk.audit.models import AuditAction, AuditRecord
from helpdesk.audit.sink import AuditSink
from helpdesk.db.models import AuditLogTable
from helpdesk.tickets.state import TicketStatus


def _session_with_failing_savepoint() -> MagicMock:
    session = MagicMock()
    session.flush = AsyncMock()
    session.begin_nested = MagicMock(side_effect=RuntimeError("savepoint unavailable"))
    return session


@pytest.mark.asyncio
async def test_audit_failure_is_logged_and_swallowed(caplog):
    sink = AuditSink()
    session = _session_with_failing_savepoint()

    with caplog.at_level(logging.ERROR, logger="helpdesk.audit.sink"):
        await sink.record(
            session,
            organization_id="org-1",
            user_id="user-1",
            action=AuditAction.TICKET_CREATED,
            ticket_id="ticket-1",
        )

    session.flush.assert_awaited_once()
    assert "Failed to create audit log" in caplog.text
    assert "TICKET_CREATED" in caplog.text


@pytest.mark.asyncio
async def test_primary_write_errors_still_propagate():
    sink = AuditSink()
    session = MagicMock()
    session.flush = AsyncMock(side_effect=RuntimeError("unique violation"))

    with pytest.raises(RuntimeError, match="unique violation"):
        await sink.record(session, organization_id="org-1", user_id="user-1", action=AuditAction.ORG_UPDATED)


@pytest.mark.asyncio
async def test_write_all_records_every_entry(services, tenant, session_factory):
    sink = AuditSink()
    records = [
        AuditRecord(action=AuditAction.ATTACHMENT_UPLOADED, user_id=tenant.owner.id, organization_id=tenant.organization_id),
        AuditRecord(
            action=AuditAction.ATTACHMENT_DELETED,
            user_id=tenant.owner.id,
            organization_id=tenant.organization_id,
            metadata={"filename": "trace.log"},
        ),
    ]

    async with session_factory() as session:
        async with session.begin():
            await sink.write_all(session, records)

    async with session_factory() as session:
        result = await session.execute(
            select(AuditLogTable).where(AuditLogTable.action == AuditAction.ATTACHMENT_DELETED.value)
        )
        rows = result.scalars().all()

    assert len(rows) == 1
    assert rows[0].metadata_ == {"filename": "trace.log"}


@pytest.mark.asyncio
async def test_failed_audit_insert_does_not_roll_back_primary_write(services, tenant):
    sink = AuditSink()
    repository = services.tickets.repository

    async with repository.transaction() as session:
        row = await repository.insert(
            session,
            organization_id=tenant.organization_id,
            title="Printer on fire",
            description="Third floor",
            status=TicketStatus.OPEN,
            requires_approval=False,
            creator_id=tenant.owner.id,
            assignee_id=None,
            created_at=datetime.now(timezone.utc),
        )
        ticket_id = row.id
        # unknown user violates the audit_logs.user_id foreign key
        await sink.record(
            session,
            organization_id=tenant.organization_id,
            user_id="missing-user",
            action=AuditAction.TICKET_CREATED,
            ticket_id=ticket_id,
        )

    fetched = await services.tickets.get_ticket(
        actor_id=tenant.owner.id, organization_id=tenant.organization_id, ticket_id=ticket_id
    )
    assert fetched.title == "Printer on fire"

    audit = await services.organizations.list_audit_log(
        actor_id=tenant.owner.id, organization_id=tenant.organization_id, ticket_id=ticket_id
    )
    assert audit.items == []
