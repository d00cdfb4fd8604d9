"""Error taxonomy shared by every layer of the helpdesk backend.

Each error carries a machine-readable ``kind``, the HTTP status it maps to, a
human-readable message and optional structured ``details``.
"""

from __future__ import annotations

from typing import Any, Mapping


class HelpdeskError(RuntimeError):
    """Base class for expected, client-visible failures."""

    kind: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}


class ValidationFailure(HelpdeskError):
    """Malformed input or an illegal state transition."""

    kind = "VALIDATION_ERROR"
    status_code = 400


class Unauthenticated(HelpdeskError):
    """Missing, invalid or expired credentials."""

    kind = "UNAUTHORIZED"
    status_code = 401


class Forbidden(HelpdeskError):
    """Authenticated, but not allowed to perform the action."""

    kind = "FORBIDDEN"
    status_code = 403


class NotFound(HelpdeskError):
    """Referenced entity is absent or belongs to another tenant."""

    kind = "NOT_FOUND"
    status_code = 404


class InternalError(HelpdeskError):
    """Unexpected failure; only a generic message reaches the client."""


class ServiceUnavailable(HelpdeskError):
    """A backing service is not wired into the running application."""

    kind = "SERVICE_UNAVAILABLE"
    status_code = 503


class InvalidTransitionError(ValidationFailure):
    """Raised when a ticket status change is not in the transition table."""


class TicketNotFoundError(NotFound):
    """Raised when a ticket could not be located in the caller's organization."""
