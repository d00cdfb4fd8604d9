from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from helpdesk.audit.models import AuditAction
from helpdesk.audit.sink import AuditSink
from helpdesk.core.errors import TicketNotFoundError, ValidationFailure
from helpdesk.core.pagination import page_count, validate_pagination
from helpdesk.orgs.membership import MembershipResolver
from helpdesk.orgs.policy import Action, authorize

from .models import UNSET, Ticket, TicketFilters, TicketPage, TicketPatch
from .repository import TicketRepository
from .state import StatusChange, TicketStateMachine

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(field_name: str, value: str) -> str:
    if not value or not value.strip():
        raise ValidationFailure(f"{field_name} must not be empty", details={field_name: ["must not be empty"]})
    return value


def _select_audit_action(status_change: StatusChange | None, changed: set[str]) -> AuditAction:
    if status_change is not None:
        if status_change.approved:
            return AuditAction.TICKET_APPROVED
        if status_change.denied:
            return AuditAction.TICKET_DENIED
        return AuditAction.STATUS_CHANGED
    if changed == {"assignee_id"}:
        return AuditAction.TICKET_ASSIGNED
    return AuditAction.TICKET_UPDATED


@dataclass(slots=True)
class TicketService:
    """High level orchestration for ticket lifecycle operations."""

    repository: TicketRepository
    memberships: MembershipResolver
    audit: AuditSink
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def create_ticket(
        self,
        *,
        actor_id: str,
        organization_id: str,
        title: str,
        description: str,
        assignee_id: str | None = None,
        requires_approval: bool = False,
    ) -> Ticket:
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.CREATE_TICKET)
        _require_text("title", title)
        _require_text("description", description)

        status = TicketStateMachine.initial_state()
        async with self.repository.transaction() as session:
            if assignee_id is not None and not await self.repository.is_member(session, assignee_id, organization_id):
                raise ValidationFailure("Assignee must be a member of the organization")
            row = await self.repository.insert(
                session,
                organization_id=organization_id,
                title=title,
                description=description,
                status=status,
                requires_approval=requires_approval,
                creator_id=actor_id,
                assignee_id=assignee_id,
                created_at=self.clock(),
            )
            ticket = self.repository.to_ticket(row)
            await self.audit.record(
                session,
                organization_id=organization_id,
                user_id=actor_id,
                action=AuditAction.TICKET_CREATED,
                ticket_id=ticket.id,
                metadata={"title": title, "status": status.value},
            )

        logger.info("Ticket %s created in organization %s by %s", ticket.id, organization_id, actor_id)
        return ticket

    async def list_tickets(
        self,
        *,
        actor_id: str,
        organization_id: str,
        filters: TicketFilters | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> TicketPage:
        validate_pagination(page, limit)
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.VIEW)

        items, total = await self.repository.list_tickets(
            organization_id,
            filters or TicketFilters(),
            offset=(page - 1) * limit,
            limit=limit,
        )
        return TicketPage(items=items, page=page, limit=limit, total=total, pages=page_count(total, limit))

    async def get_ticket(self, *, actor_id: str, organization_id: str, ticket_id: str) -> Ticket:
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.VIEW)
        ticket = await self.repository.get_ticket(organization_id, ticket_id)
        if ticket is None:
            raise TicketNotFoundError("Ticket not found")
        return ticket

    async def update_ticket(
        self,
        *,
        actor_id: str,
        organization_id: str,
        ticket_id: str,
        patch: TicketPatch,
    ) -> Ticket:
        """Apply ``patch`` in one transaction.

        Only fields whose value actually differs count as changes; a patch
        without any returns the stored ticket untouched and writes no audit
        entry.
        """

        membership = await self.memberships.require(actor_id, organization_id)
        now = self.clock()

        async with self.repository.transaction() as session:
            row = await self.repository.find(session, organization_id, ticket_id, for_update=True)
            if row is None:
                raise TicketNotFoundError("Ticket not found")
            current = self.repository.to_ticket(row)

            changes: dict[str, Any] = {}
            if patch.title is not None and patch.title != current.title:
                changes["title"] = _require_text("title", patch.title)
            if patch.description is not None and patch.description != current.description:
                changes["description"] = _require_text("description", patch.description)
            if changes:
                authorize(membership.role, Action.EDIT_TICKET_CONTENT)

            if patch.assignee_id is not UNSET and patch.assignee_id != current.assignee_id:
                authorize(membership.role, Action.EDIT_TICKET_FIELDS)
                if patch.assignee_id is not None and not await self.repository.is_member(
                    session, patch.assignee_id, organization_id
                ):
                    raise ValidationFailure(
                        "Assignee must be a member of the organization",
                        details={"assignee_id": patch.assignee_id},
                    )
                changes["assignee_id"] = patch.assignee_id

            if patch.requires_approval is not None and patch.requires_approval != current.requires_approval:
                authorize(membership.role, Action.EDIT_TICKET_FIELDS)
                changes["requires_approval"] = patch.requires_approval

            status_change: StatusChange | None = None
            if patch.status is not None:
                status_change = TicketStateMachine.transition(
                    current.status,
                    patch.status,
                    membership.role,
                    resolved_at=current.resolved_at,
                    closed_at=current.closed_at,
                    now=now,
                )

            if not changes and status_change is None:
                return current

            metadata: dict[str, Any] = {}
            for name, value in changes.items():
                metadata[f"old_{name}"] = getattr(current, name)
                metadata[f"new_{name}"] = value
                setattr(row, name, value)

            if status_change is not None:
                metadata.update(status_change.audit_metadata())
                row.status = status_change.to_status.value
                row.resolved_at = status_change.resolved_at
                row.closed_at = status_change.closed_at
                if status_change.approved:
                    row.approved_by_id = actor_id
                    row.approved_at = status_change.approved_at

            row.updated_at = now
            ticket = self.repository.to_ticket(row)
            action = _select_audit_action(status_change, set(changes))
            await self.audit.record(
                session,
                organization_id=organization_id,
                user_id=actor_id,
                action=action,
                ticket_id=ticket.id,
                metadata=metadata,
            )

        logger.info("Ticket %s updated by %s (%s)", ticket_id, actor_id, action.value)
        return ticket

    async def delete_ticket(self, *, actor_id: str, organization_id: str, ticket_id: str) -> None:
        membership = await self.memberships.require(actor_id, organization_id)
        authorize(membership.role, Action.DELETE_TICKET)

        async with self.repository.transaction() as session:
            row = await self.repository.find(session, organization_id, ticket_id, for_update=True)
            if row is None:
                raise TicketNotFoundError("Ticket not found")
            title = row.title
            await self.repository.delete(session, row)
            # the entry must not reference the ticket or the cascade would remove it
            await self.audit.record(
                session,
                organization_id=organization_id,
                user_id=actor_id,
                action=AuditAction.TICKET_DELETED,
                metadata={"ticket_id": ticket_id, "title": title},
            )

        logger.info("Ticket %s deleted from organization %s by %s", ticket_id, organization_id, actor_id)
