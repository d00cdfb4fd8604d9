"""Sign-up, login and session token lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.audit.models import AuditAction, AuditRecord
from helpdesk.audit.sink import AuditSink
from helpdesk.core.errors import Unauthenticated, ValidationFailure
from helpdesk.core.security import PasswordHasher, TokenService
from helpdesk.core.text import normalize_email
from helpdesk.db.models import ensure_datetime
from helpdesk.orgs.service import OrganizationService

from .models import LoginResult, SessionTokens, SignupResult, User
from .repository import AccountRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class AccountService:
    """Coordinate credentials, tokens and the first organization of a new user."""

    repository: AccountRepository
    organizations: OrganizationService
    hasher: PasswordHasher
    tokens: TokenService
    audit: AuditSink
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def signup(self, *, email: str, password: str, name: str, organization_name: str) -> SignupResult:
        email = normalize_email(email)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailure(
                "Password must be at least 8 characters",
                details={"password": [f"must be at least {MIN_PASSWORD_LENGTH} characters"]},
            )
        if not name.strip():
            raise ValidationFailure("Name required", details={"name": ["must not be empty"]})

        password_hash = await self.hasher.hash(password)
        async with self.repository.transaction() as session:
            if await self.repository.find_user_by_email(session, email) is not None:
                raise ValidationFailure("Email already registered")
            user_row = await self.repository.insert_user(
                session,
                email=email,
                password_hash=password_hash,
                name=name.strip(),
                created_at=self.clock(),
            )
            user = self.repository.to_user(user_row)
            organization = await self.organizations.provision(session, owner_id=user.id, name=organization_name)
            await self.audit.record(
                session,
                organization_id=organization.id,
                user_id=user.id,
                action=AuditAction.USER_SIGNUP,
                metadata={"email": email},
            )
            tokens = await self._issue_session(session, user.id)

        logger.info("User %s signed up with organization %s", user.id, organization.id)
        return SignupResult(user=user, organization=organization, tokens=tokens)

    async def login(self, *, email: str, password: str) -> LoginResult:
        email = normalize_email(email)
        async with self.repository.transaction() as session:
            user_row = await self.repository.find_user_by_email(session, email)
            if user_row is None or not await self.hasher.verify(password, user_row.password_hash):
                logger.info("Rejected login attempt for %s", email)
                raise Unauthenticated("Invalid credentials")

            user = self.repository.to_user(user_row)
            tokens = await self._issue_session(session, user.id)
            organization_ids = await self.repository.organization_ids_for(session, user.id)
            await self.audit.write_all(
                session,
                [
                    AuditRecord(
                        action=AuditAction.USER_LOGIN,
                        user_id=user.id,
                        organization_id=organization_id,
                        metadata={"email": email},
                    )
                    for organization_id in organization_ids
                ],
            )

        return LoginResult(user=user, tokens=tokens)

    async def refresh(self, refresh_token: str) -> str:
        """Exchange a stored, unexpired refresh token for a new access token."""

        user_id = self.tokens.verify_refresh(refresh_token)
        stored = await self.repository.find_refresh_token(self.tokens.digest(refresh_token))
        if stored is None or stored.user_id != user_id:
            raise Unauthenticated("Invalid refresh token")
        if ensure_datetime(stored.expires_at) <= self.clock():
            raise Unauthenticated("Refresh token has expired")
        return self.tokens.issue_access(user_id)

    async def logout(self, refresh_token: str) -> None:
        revoked = await self.repository.delete_refresh_token(self.tokens.digest(refresh_token))
        if revoked:
            logger.info("Refresh token revoked")

    async def authenticate(self, access_token: str) -> User:
        user_id = self.tokens.verify_access(access_token)
        user = await self.repository.get_user(user_id)
        if user is None:
            raise Unauthenticated("User not found")
        return user

    async def _issue_session(self, session: AsyncSession, user_id: str) -> SessionTokens:
        access_token = self.tokens.issue_access(user_id)
        refresh_token = self.tokens.issue_refresh(user_id)
        await self.repository.store_refresh_token(
            session,
            user_id=user_id,
            token_digest=self.tokens.digest(refresh_token),
            expires_at=self.tokens.refresh_expiry(),
        )
        return SessionTokens(access_token=access_token, refresh_token=refresh_token)
