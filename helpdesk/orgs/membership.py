"""Membership lookups: who belongs to which organization, and with what role."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from helpdesk.core.errors import Forbidden
from helpdesk.db.models import MembershipTable, ensure_datetime

from .models import Membership
from .policy import Role

logger = logging.getLogger(__name__)


def membership_from_row(row: MembershipTable) -> Membership:
    return Membership(
        id=row.id,
        user_id=row.user_id,
        organization_id=row.organization_id,
        role=Role(row.role),
        joined_at=ensure_datetime(row.joined_at),
    )


async def fetch_membership(
    session: AsyncSession, user_id: str, organization_id: str, *, for_update: bool = False
) -> MembershipTable | None:
    statement = select(MembershipTable).where(
        MembershipTable.user_id == user_id,
        MembershipTable.organization_id == organization_id,
    )
    if for_update:
        statement = statement.with_for_update()
    result = await session.execute(statement)
    return result.scalars().first()


class MembershipResolver:
    """Resolve the (user, organization) pair to a membership."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def resolve(self, user_id: str, organization_id: str) -> Membership | None:
        async with self._session_factory() as session:
            row = await fetch_membership(session, user_id, organization_id)
        if row is None:
            return None
        return membership_from_row(row)

    async def require(self, user_id: str, organization_id: str) -> Membership:
        membership = await self.resolve(user_id, organization_id)
        if membership is None:
            logger.info("User %s has no membership in organization %s", user_id, organization_id)
            raise Forbidden("Access denied to this organization")
        return membership
