"""Audit trail: action enum, best-effort sink and read repository."""

from .models import AuditAction, AuditEntry, AuditPage, AuditRecord
from .repository import AuditLogRepository
from .sink import AuditSink

__all__ = ["AuditAction", "AuditEntry", "AuditPage", "AuditLogRepository", "AuditRecord", "AuditSink"]
