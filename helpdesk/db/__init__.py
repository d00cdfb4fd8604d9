"""Database models and utilities."""

from .models import (
    AttachmentTable,
    AuditLogTable,
    MembershipTable,
    OrganizationTable,
    RefreshTokenTable,
    TicketTable,
    UserTable,
)
from .session import create_engine, create_session_factory, ensure_schema

__all__ = [
    "AttachmentTable",
    "AuditLogTable",
    "MembershipTable",
    "OrganizationTable",
    "RefreshTokenTable",
    "TicketTable",
    "UserTable",
    "create_engine",
    "create_session_factory",
    "ensure_schema",
]
