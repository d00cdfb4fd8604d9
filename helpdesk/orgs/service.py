from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.audit.models import AuditAction, AuditPage
from helpdesk.audit.repository import AuditLogRepository
from helpdesk.audit.sink import AuditSink
from helpdesk.core.errors import NotFound, ValidationFailure
from helpdesk.core.pagination import page_count, validate_pagination
from helpdesk.core.text import normalize_email, unique_slug

from .membership import MembershipResolver
from .models import Member, Membership, Organization, OrganizationSummary
from .policy import Action, Role, authorize, ensure_owner_remains
from .repository import OrganizationRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationFailure("Organization name required", details={"name": ["must not be empty"]})
    return cleaned


@dataclass(slots=True)
class OrganizationService:
    """Organization and membership management scoped by the caller's role."""

    repository: OrganizationRepository
    memberships: MembershipResolver
    audit: AuditSink
    audit_log: AuditLogRepository
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def provision(self, session: AsyncSession, *, owner_id: str, name: str) -> Organization:
        """Create an organization with ``owner_id`` as its OWNER inside ``session``."""

        name = _require_name(name)
        now = self.clock()
        org_row = await self.repository.insert_organization(session, name=name, slug=unique_slug(name), created_at=now)
        await self.repository.insert_membership(
            session, user_id=owner_id, organization_id=org_row.id, role=Role.OWNER, joined_at=now
        )
        organization = self.repository.to_organization(org_row)
        await self.audit.record(
            session,
            organization_id=organization.id,
            user_id=owner_id,
            action=AuditAction.ORG_CREATED,
            metadata={"name": name, "slug": organization.slug},
        )
        return organization

    async def create_organization(self, *, actor_id: str, name: str) -> Organization:
        async with self.repository.transaction() as session:
            organization = await self.provision(session, owner_id=actor_id, name=name)
        logger.info("Organization %s created by %s", organization.id, actor_id)
        return organization

    async def list_organizations(self, *, actor_id: str) -> list[OrganizationSummary]:
        return await self.repository.list_for_user(actor_id)

    async def get_organization(self, *, actor_id: str, organization_id: str) -> Organization:
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.VIEW)
        organization = await self.repository.get_organization(organization_id)
        if organization is None:
            raise NotFound("Organization not found")
        return organization

    async def update_organization(self, *, actor_id: str, organization_id: str, name: str) -> Organization:
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.UPDATE_ORGANIZATION)
        name = _require_name(name)

        async with self.repository.transaction() as session:
            row = await self.repository.find_organization(session, organization_id)
            if row is None:
                raise NotFound("Organization not found")
            if row.name == name:
                return self.repository.to_organization(row)
            old_name = row.name
            row.name = name
            row.updated_at = self.clock()
            organization = self.repository.to_organization(row)
            await self.audit.record(
                session,
                organization_id=organization_id,
                user_id=actor_id,
                action=AuditAction.ORG_UPDATED,
                metadata={"old_name": old_name, "new_name": name},
            )
        return organization

    async def list_members(self, *, actor_id: str, organization_id: str) -> list[Member]:
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.VIEW)
        return await self.repository.list_members(organization_id)

    async def add_member(self, *, actor_id: str, organization_id: str, email: str, role: Role) -> Member:
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.ADD_MEMBER)
        if role is Role.OWNER:
            authorize(membership.role, Action.CHANGE_MEMBER_ROLE, "Only owners can grant the OWNER role")

        async with self.repository.transaction() as session:
            user_row = await self.repository.find_user_by_email(session, normalize_email(email))
            if user_row is None:
                raise NotFound("User not found")
            if await self.repository.find_membership(session, user_row.id, organization_id) is not None:
                raise ValidationFailure("User is already a member of this organization")
            membership_row = await self.repository.insert_membership(
                session,
                user_id=user_row.id,
                organization_id=organization_id,
                role=role,
                joined_at=self.clock(),
            )
            member = self.repository.to_member(membership_row, user_row)
            await self.audit.record(
                session,
                organization_id=organization_id,
                user_id=actor_id,
                action=AuditAction.MEMBER_ADDED,
                metadata={"member_user_id": member.user_id, "email": member.email, "role": role.value},
            )

        logger.info("User %s added to organization %s as %s", member.user_id, organization_id, role.value)
        return member

    async def change_member_role(
        self, *, actor_id: str, organization_id: str, user_id: str, role: Role
    ) -> Membership:
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.CHANGE_MEMBER_ROLE)

        async with self.repository.transaction() as session:
            owners = await self.repository.lock_owners(session, organization_id)
            row = await self.repository.find_membership(session, user_id, organization_id, for_update=True)
            if row is None:
                raise NotFound("Membership not found")
            old_role = Role(row.role)
            if old_role is role:
                return self.repository.to_membership(row)
            ensure_owner_remains(old_role, len(owners))
            row.role = role.value
            updated = self.repository.to_membership(row)
            await self.audit.record(
                session,
                organization_id=organization_id,
                user_id=actor_id,
                action=AuditAction.ROLE_CHANGED,
                metadata={"target_user_id": user_id, "old_role": old_role.value, "new_role": role.value},
            )

        logger.info("Role of %s in organization %s changed %s -> %s", user_id, organization_id, old_role.value, role.value)
        return updated

    async def remove_member(self, *, actor_id: str, organization_id: str, user_id: str) -> None:
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.REMOVE_MEMBER)

        async with self.repository.transaction() as session:
            owners = await self.repository.lock_owners(session, organization_id)
            row = await self.repository.find_membership(session, user_id, organization_id, for_update=True)
            if row is None:
                raise NotFound("Membership not found")
            target_role = Role(row.role)
            ensure_owner_remains(target_role, len(owners))
            await self.repository.delete_membership(session, row)
            await self.audit.record(
                session,
                organization_id=organization_id,
                user_id=actor_id,
                action=AuditAction.MEMBER_REMOVED,
                metadata={"removed_user_id": user_id, "role": target_role.value},
            )

        logger.info("User %s removed from organization %s by %s", user_id, organization_id, actor_id)

    async def list_audit_log(
        self,
        *,
        actor_id: str,
        organization_id: str,
        ticket_id: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> AuditPage:
        validate_pagination(page, limit)
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.VIEW_AUDIT_LOG)
        items, total = await self.audit_log.list_entries(
            organization_id, ticket_id=ticket_id, offset=(page - 1) * limit, limit=limit
        )
        return AuditPage(items=items, page=page, limit=limit, total=total, pages=page_count(total, limit))
