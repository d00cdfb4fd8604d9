from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from helpdesk.core.errors import InvalidTransitionError
from helpdesk.orgs.policy import Action, Role, authorize


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    OPEN = "OPEN"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


@dataclass(slots=True, frozen=True)
class StatusChange:
    """Outcome of a legal transition, including the milestones to persist."""

    from_status: TicketStatus
    to_status: TicketStatus
    resolved_at: datetime | None
    closed_at: datetime | None
    approved_at: datetime | None = None

    @property
    def approved(self) -> bool:
        return self.to_status is TicketStatus.APPROVED

    @property
    def denied(self) -> bool:
        return self.from_status is TicketStatus.PENDING_APPROVAL and self.to_status is TicketStatus.OPEN

    def audit_metadata(self) -> dict[str, Any]:
        return {"old_status": self.from_status.value, "new_status": self.to_status.value}


class TicketStateMachine:
    """Validate ticket lifecycle transitions."""

    _TRANSITIONS: dict[TicketStatus, set[TicketStatus]] = {
        TicketStatus.OPEN: {TicketStatus.PENDING_APPROVAL, TicketStatus.IN_PROGRESS, TicketStatus.CLOSED},
        TicketStatus.PENDING_APPROVAL: {TicketStatus.APPROVED, TicketStatus.OPEN},
        TicketStatus.APPROVED: {TicketStatus.IN_PROGRESS, TicketStatus.CLOSED},
        TicketStatus.IN_PROGRESS: {TicketStatus.RESOLVED, TicketStatus.CLOSED},
        TicketStatus.RESOLVED: {TicketStatus.CLOSED},
        TicketStatus.CLOSED: set(),
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.OPEN

    @classmethod
    def allowed_targets(cls, current: TicketStatus) -> frozenset[TicketStatus]:
        return frozenset(cls._TRANSITIONS.get(current, set()))

    @classmethod
    def transition(
        cls,
        current: TicketStatus,
        requested: TicketStatus,
        role: Role,
        *,
        resolved_at: datetime | None,
        closed_at: datetime | None,
        now: datetime,
    ) -> StatusChange | None:
        """Validate ``current -> requested`` for ``role``.

        Returns ``None`` when the status is unchanged. Role gating happens
        before the table lookup, so a VIEWER is refused even for pairs the
        table would reject anyway. ``resolved_at`` and ``closed_at`` are only
        stamped when entering their state for the first time.
        """

        if requested == current:
            return None

        authorize(role, Action.CHANGE_TICKET_STATUS)

        targets = cls._TRANSITIONS.get(current, set())
        if requested not in targets:
            raise InvalidTransitionError(
                f"Cannot transition from {current.value} to {requested.value}",
                details={
                    "current_status": current.value,
                    "requested_status": requested.value,
                    "allowed_transitions": sorted(status.value for status in targets),
                },
            )

        if requested is TicketStatus.RESOLVED and resolved_at is None:
            resolved_at = now
        if requested is TicketStatus.CLOSED and closed_at is None:
            closed_at = now

        return StatusChange(
            from_status=current,
            to_status=requested,
            resolved_at=resolved_at,
            closed_at=closed_at,
            approved_at=now if requested is TicketStatus.APPROVED else None,
        )
