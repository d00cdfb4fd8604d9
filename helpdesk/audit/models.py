from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class AuditAction(str, Enum):
    """Closed set of facts the audit trail records."""

    USER_LOGIN = "USER_LOGIN"
    USER_SIGNUP = "USER_SIGNUP"
    USER_JOINED_ORG = "USER_JOINED_ORG"
    ORG_CREATED = "ORG_CREATED"
    ORG_UPDATED = "ORG_UPDATED"
    MEMBER_ADDED = "MEMBER_ADDED"
    MEMBER_REMOVED = "MEMBER_REMOVED"
    ROLE_CHANGED = "ROLE_CHANGED"
    TICKET_CREATED = "TICKET_CREATED"
    TICKET_UPDATED = "TICKET_UPDATED"
    TICKET_DELETED = "TICKET_DELETED"
    STATUS_CHANGED = "STATUS_CHANGED"
    TICKET_ASSIGNED = "TICKET_ASSIGNED"
    TICKET_APPROVED = "TICKET_APPROVED"
    TICKET_DENIED = "TICKET_DENIED"
    ATTACHMENT_UPLOADED = "ATTACHMENT_UPLOADED"
    ATTACHMENT_DELETED = "ATTACHMENT_DELETED"


@dataclass(slots=True)
class AuditRecord:
    """A fact waiting to be written by the audit sink."""

    action: AuditAction
    user_id: str
    organization_id: str
    ticket_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AuditEntry:
    """Stored audit fact."""

    id: str
    organization_id: str
    user_id: str
    action: AuditAction
    ticket_id: str | None
    metadata: dict[str, Any]
    created_at: datetime


@dataclass(slots=True)
class AuditPage:
    items: list[AuditEntry] = field(default_factory=list)
    page: int = 1
    limit: int = 50
    total: int = 0
    pages: int = 0
