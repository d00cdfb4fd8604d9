from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from helpdesk.db.models import TicketTable, ensure_datetime
from helpdesk.orgs.membership import fetch_membership

from .models import Ticket, TicketFilters
from .state import TicketStatus


class TicketRepository:
    """Persistence helper for the ``tickets`` table.

    Every lookup is scoped by organization id: a ticket id from another
    tenant is indistinguishable from one that does not exist.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            async with session.begin():
                yield session

    async def insert(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        title: str,
        description: str,
        status: TicketStatus,
        requires_approval: bool,
        creator_id: str,
        assignee_id: str | None,
        created_at: datetime,
    ) -> TicketTable:
        row = TicketTable(
            organization_id=organization_id,
            title=title,
            description=description,
            status=status.value,
            requires_approval=requires_approval,
            creator_id=creator_id,
            assignee_id=assignee_id,
            created_at=created_at,
            updated_at=created_at,
        )
        session.add(row)
        await session.flush()
        return row

    async def find(
        self, session: AsyncSession, organization_id: str, ticket_id: str, *, for_update: bool = False
    ) -> TicketTable | None:
        """Load one ticket of ``organization_id``.

        Writers pass ``for_update=True`` so the status they validate against
        cannot change before their commit.
        """

        statement = select(TicketTable).where(
            TicketTable.id == ticket_id,
            TicketTable.organization_id == organization_id,
        )
        if for_update:
            statement = statement.with_for_update()
        result = await session.execute(statement)
        return result.scalars().first()

    async def delete(self, session: AsyncSession, row: TicketTable) -> None:
        # attachments and ticket audit rows go with it through ON DELETE CASCADE
        await session.delete(row)
        await session.flush()

    async def is_member(self, session: AsyncSession, user_id: str, organization_id: str) -> bool:
        return await fetch_membership(session, user_id, organization_id) is not None

    async def get_ticket(self, organization_id: str, ticket_id: str) -> Ticket | None:
        async with self._session_factory() as session:
            row = await self.find(session, organization_id, ticket_id)
        if row is None:
            return None
        return self.to_ticket(row)

    async def list_tickets(
        self,
        organization_id: str,
        filters: TicketFilters,
        *,
        offset: int,
        limit: int,
    ) -> tuple[list[Ticket], int]:
        conditions = [TicketTable.organization_id == organization_id]
        if filters.status is not None:
            conditions.append(TicketTable.status == filters.status.value)
        if filters.assignee_id is not None:
            conditions.append(TicketTable.assignee_id == filters.assignee_id)
        if filters.creator_id is not None:
            conditions.append(TicketTable.creator_id == filters.creator_id)

        async with self._session_factory() as session:
            total = (
                await session.execute(select(func.count()).select_from(TicketTable).where(*conditions))
            ).scalar_one()
            result = await session.execute(
                select(TicketTable)
                .where(*conditions)
                .order_by(TicketTable.created_at.desc(), TicketTable.id.desc())
                .offset(offset)
                .limit(limit)
            )
            rows = result.scalars().all()
        return [self.to_ticket(row) for row in rows], int(total)

    @staticmethod
    def to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            organization_id=row.organization_id,
            title=row.title,
            description=row.description,
            status=TicketStatus(row.status),
            requires_approval=bool(row.requires_approval),
            creator_id=row.creator_id,
            assignee_id=row.assignee_id,
            approved_by_id=row.approved_by_id,
            approved_at=ensure_datetime(row.approved_at),
            created_at=ensure_datetime(row.created_at),
            updated_at=ensure_datetime(row.updated_at),
            resolved_at=ensure_datetime(row.resolved_at),
            closed_at=ensure_datetime(row.closed_at),
        )
