"""Best-effort audit trail writer.

Entries are written inside the caller's transaction so a ticket and its
audit entry commit together, but each insert runs behind its own SAVEPOINT:
a failing audit write is rolled back on its own, logged, and never reaches
the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.db.models import AuditLogTable

from .models import AuditAction, AuditRecord

logger = logging.getLogger(__name__)


class AuditSink:
    """Append-only recorder for :class:`AuditAction` facts."""

    async def record(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        user_id: str,
        action: AuditAction,
        ticket_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        # Pending primary writes flush here so their errors still propagate.
        await session.flush()

        entry = AuditLogTable(
            organization_id=organization_id,
            ticket_id=ticket_id,
            user_id=user_id,
            action=action.value,
            metadata_=dict(metadata or {}),
        )
        try:
            async with session.begin_nested():
                session.add(entry)
        except Exception:
            logger.exception(
                "Failed to create audit log (organization=%s user=%s action=%s ticket=%s)",
                organization_id,
                user_id,
                action.value,
                ticket_id,
            )

    async def write(self, session: AsyncSession, record: AuditRecord) -> None:
        await self.record(
            session,
            organization_id=record.organization_id,
            user_id=record.user_id,
            action=record.action,
            ticket_id=record.ticket_id,
            metadata=record.metadata,
        )

    async def write_all(self, session: AsyncSession, records: Iterable[AuditRecord]) -> None:
        for record in records:
            await self.write(session, record)
