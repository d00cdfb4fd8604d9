from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from helpdesk.db.models import AuditLogTable, ensure_datetime

from .models import AuditAction, AuditEntry


class AuditLogRepository:
    """Read side of the audit trail."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_entries(
        self,
        organization_id: str,
        *,
        ticket_id: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[AuditEntry], int]:
        conditions = [AuditLogTable.organization_id == organization_id]
        if ticket_id is not None:
            conditions.append(AuditLogTable.ticket_id == ticket_id)

        async with self._session_factory() as session:
            total = (
                await session.execute(select(func.count()).select_from(AuditLogTable).where(*conditions))
            ).scalar_one()
            result = await session.execute(
                select(AuditLogTable)
                .where(*conditions)
                .order_by(AuditLogTable.created_at.desc(), AuditLogTable.id)
                .offset(offset)
                .limit(limit)
            )
            rows = result.scalars().all()
        return [self._table_to_entry(row) for row in rows], int(total)

    @staticmethod
    def _table_to_entry(row: AuditLogTable) -> AuditEntry:
        return AuditEntry(
            id=row.id,
            organization_id=row.organization_id,
            user_id=row.user_id,
            action=AuditAction(row.action),
            ticket_id=row.ticket_id,
            metadata=dict(row.metadata_ or {}),
            created_at=ensure_datetime(row.created_at),
        )
