from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from helpdesk.core.errors import ValidationFailure
from helpdesk.db.models import MembershipTable, OrganizationTable, UserTable, ensure_datetime

from .membership import fetch_membership, membership_from_row
from .models import Member, Membership, Organization, OrganizationSummary
from .policy import Role


class OrganizationRepository:
    """Persistence helper wrapping ``organizations`` and ``memberships``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            async with session.begin():
                yield session

    async def insert_organization(
        self, session: AsyncSession, *, name: str, slug: str, created_at: datetime
    ) -> OrganizationTable:
        row = OrganizationTable(name=name, slug=slug, created_at=created_at, updated_at=created_at)
        session.add(row)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ValidationFailure("Organization slug already exists", details={"slug": slug}) from exc
        return row

    async def insert_membership(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        organization_id: str,
        role: Role,
        joined_at: datetime,
    ) -> MembershipTable:
        row = MembershipTable(user_id=user_id, organization_id=organization_id, role=role.value, joined_at=joined_at)
        session.add(row)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ValidationFailure("User is already a member of this organization") from exc
        return row

    async def find_organization(self, session: AsyncSession, organization_id: str) -> OrganizationTable | None:
        return await session.get(OrganizationTable, organization_id)

    async def find_membership(
        self, session: AsyncSession, user_id: str, organization_id: str, *, for_update: bool = False
    ) -> MembershipTable | None:
        return await fetch_membership(session, user_id, organization_id, for_update=for_update)

    async def find_user_by_email(self, session: AsyncSession, email: str) -> UserTable | None:
        result = await session.execute(select(UserTable).where(UserTable.email == email))
        return result.scalars().first()

    async def lock_owners(self, session: AsyncSession, organization_id: str) -> list[MembershipTable]:
        """Load the organization's OWNER memberships under ``FOR UPDATE``.

        Concurrent removals or demotions of owners serialize on these rows, so
        each one sees the owner set left behind by the previous commit.
        """

        result = await session.execute(
            select(MembershipTable)
            .where(
                MembershipTable.organization_id == organization_id,
                MembershipTable.role == Role.OWNER.value,
            )
            .order_by(MembershipTable.id)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def delete_membership(self, session: AsyncSession, row: MembershipTable) -> None:
        await session.delete(row)
        await session.flush()

    async def get_organization(self, organization_id: str) -> Organization | None:
        async with self._session_factory() as session:
            row = await self.find_organization(session, organization_id)
        if row is None:
            return None
        return self.to_organization(row)

    async def list_for_user(self, user_id: str) -> list[OrganizationSummary]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrganizationTable, MembershipTable)
                .join(MembershipTable, MembershipTable.organization_id == OrganizationTable.id)
                .where(MembershipTable.user_id == user_id)
                .order_by(MembershipTable.joined_at.desc())
            )
            rows = result.all()
        return [
            OrganizationSummary(
                organization=self.to_organization(org_row),
                role=Role(membership_row.role),
                joined_at=ensure_datetime(membership_row.joined_at),
            )
            for org_row, membership_row in rows
        ]

    async def list_members(self, organization_id: str) -> list[Member]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MembershipTable, UserTable)
                .join(UserTable, UserTable.id == MembershipTable.user_id)
                .where(MembershipTable.organization_id == organization_id)
                .order_by(MembershipTable.joined_at.asc())
            )
            rows = result.all()
        return [self.to_member(membership_row, user_row) for membership_row, user_row in rows]

    @staticmethod
    def to_organization(row: OrganizationTable) -> Organization:
        return Organization(
            id=row.id,
            name=row.name,
            slug=row.slug,
            created_at=ensure_datetime(row.created_at),
            updated_at=ensure_datetime(row.updated_at),
        )

    @staticmethod
    def to_membership(row: MembershipTable) -> Membership:
        return membership_from_row(row)

    @staticmethod
    def to_member(membership_row: MembershipTable, user_row: UserTable) -> Member:
        return Member(
            membership_id=membership_row.id,
            user_id=user_row.id,
            email=user_row.email,
            name=user_row.name,
            role=Role(membership_row.role),
            joined_at=ensure_datetime(membership_row.joined_at),
        )
