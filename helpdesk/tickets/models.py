from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .state import TicketStatus


class _Unset(Enum):
    UNSET = "UNSET"


UNSET = _Unset.UNSET
"""Marker for a patch field the client did not send (``None`` means clear)."""


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket entry."""

    id: str
    organization_id: str
    title: str
    description: str
    status: TicketStatus
    requires_approval: bool
    creator_id: str
    assignee_id: str | None
    approved_by_id: str | None
    approved_at: datetime | None
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None
    closed_at: datetime | None


@dataclass(slots=True)
class TicketPatch:
    """Partial update; ``None`` on title/description/status means unchanged."""

    title: str | None = None
    description: str | None = None
    status: TicketStatus | None = None
    requires_approval: bool | None = None
    assignee_id: str | None | _Unset = UNSET


@dataclass(slots=True)
class TicketFilters:
    status: TicketStatus | None = None
    assignee_id: str | None = None
    creator_id: str | None = None


@dataclass(slots=True)
class TicketPage:
    """One page of tickets plus the totals needed to walk the rest."""

    items: list[Ticket] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0
    pages: int = 0
