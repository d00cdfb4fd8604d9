from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from helpdesk.core.errors import ValidationFailure
from helpdesk.db.models import MembershipTable, RefreshTokenTable, UserTable, ensure_datetime

from .models import User


class AccountRepository:
    """Persistence helper for ``users`` and ``refresh_tokens``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            async with session.begin():
                yield session

    async def insert_user(
        self,
        session: AsyncSession,
        *,
        email: str,
        password_hash: str,
        name: str,
        created_at: datetime,
    ) -> UserTable:
        row = UserTable(
            email=email,
            password_hash=password_hash,
            name=name,
            created_at=created_at,
            updated_at=created_at,
        )
        session.add(row)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ValidationFailure("Email already registered", details={"email": email}) from exc
        return row

    async def find_user_by_email(self, session: AsyncSession, email: str) -> UserTable | None:
        result = await session.execute(select(UserTable).where(UserTable.email == email))
        return result.scalars().first()

    async def get_user(self, user_id: str) -> User | None:
        async with self._session_factory() as session:
            row = await session.get(UserTable, user_id)
        if row is None:
            return None
        return self.to_user(row)

    async def organization_ids_for(self, session: AsyncSession, user_id: str) -> list[str]:
        result = await session.execute(
            select(MembershipTable.organization_id).where(MembershipTable.user_id == user_id)
        )
        return list(result.scalars().all())

    async def store_refresh_token(
        self, session: AsyncSession, *, user_id: str, token_digest: str, expires_at: datetime
    ) -> None:
        session.add(RefreshTokenTable(user_id=user_id, token_digest=token_digest, expires_at=expires_at))
        await session.flush()

    async def find_refresh_token(self, token_digest: str) -> RefreshTokenTable | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RefreshTokenTable).where(RefreshTokenTable.token_digest == token_digest)
            )
            return result.scalars().first()

    async def delete_refresh_token(self, token_digest: str) -> bool:
        async with self.transaction() as session:
            result = await session.execute(
                delete(RefreshTokenTable).where(RefreshTokenTable.token_digest == token_digest)
            )
        return bool(result.rowcount)

    @staticmethod
    def to_user(row: UserTable) -> User:
        return User(id=row.id, email=row.email, name=row.name, created_at=ensure_datetime(row.created_at))
