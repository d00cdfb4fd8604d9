"""Role capability table for organization-scoped authorization.

Roles are a closed enumeration and every decision is a lookup in
``CAPABILITIES``; nothing is derived from role ordering.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping

from helpdesk.core.errors import Forbidden, ValidationFailure


class Role(str, Enum):
    """Membership roles, most privileged first."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    AGENT = "AGENT"
    VIEWER = "VIEWER"


class Action(str, Enum):
    """Actions gated by the capability table."""

    VIEW = "view"
    CREATE_TICKET = "create_ticket"
    CHANGE_TICKET_STATUS = "change_ticket_status"
    EDIT_TICKET_CONTENT = "edit_ticket_content"
    EDIT_TICKET_FIELDS = "edit_ticket_fields"
    DELETE_TICKET = "delete_ticket"
    UPDATE_ORGANIZATION = "update_organization"
    ADD_MEMBER = "add_member"
    CHANGE_MEMBER_ROLE = "change_member_role"
    REMOVE_MEMBER = "remove_member"
    VIEW_AUDIT_LOG = "view_audit_log"


CAPABILITIES: Mapping[Role, frozenset[Action]] = {
    Role.OWNER: frozenset(Action),
    Role.ADMIN: frozenset(
        {
            Action.VIEW,
            Action.CREATE_TICKET,
            Action.CHANGE_TICKET_STATUS,
            Action.EDIT_TICKET_CONTENT,
            Action.EDIT_TICKET_FIELDS,
            Action.DELETE_TICKET,
            Action.ADD_MEMBER,
            Action.REMOVE_MEMBER,
            Action.VIEW_AUDIT_LOG,
        }
    ),
    Role.AGENT: frozenset(
        {
            Action.VIEW,
            Action.CREATE_TICKET,
            Action.CHANGE_TICKET_STATUS,
            Action.EDIT_TICKET_FIELDS,
        }
    ),
    Role.VIEWER: frozenset({Action.VIEW, Action.CREATE_TICKET}),
}

_DENIAL_REASONS: Mapping[Action, str] = {
    Action.VIEW: "Access denied to this organization",
    Action.CREATE_TICKET: "Your role cannot create tickets",
    Action.CHANGE_TICKET_STATUS: "Viewers cannot change ticket status",
    Action.EDIT_TICKET_CONTENT: "Only admins can update ticket title/description",
    Action.EDIT_TICKET_FIELDS: "Your role cannot edit ticket assignment or approval settings",
    Action.DELETE_TICKET: "Only admins can delete tickets",
    Action.UPDATE_ORGANIZATION: "Only owners can update the organization",
    Action.ADD_MEMBER: "Only admins can add members",
    Action.CHANGE_MEMBER_ROLE: "Only owners can change member roles",
    Action.REMOVE_MEMBER: "Only admins can remove members",
    Action.VIEW_AUDIT_LOG: "Only admins can view the audit log",
}


def allowed_actions(role: Role) -> frozenset[Action]:
    return CAPABILITIES.get(role, frozenset())


def is_allowed(role: Role, action: Action) -> bool:
    return action in allowed_actions(role)


def authorize(role: Role, action: Action, reason: str | None = None) -> None:
    """Raise :class:`Forbidden` unless ``role`` may perform ``action``."""

    if not is_allowed(role, action):
        raise Forbidden(
            reason or _DENIAL_REASONS[action],
            details={"role": role.value, "action": action.value},
        )


def ensure_owner_remains(target_role: Role, owner_count: int) -> None:
    """Reject taking away the organization's last OWNER membership.

    ``owner_count`` must be read from current state within the same
    transaction as the removal or demotion.
    """

    if target_role is Role.OWNER and owner_count <= 1:
        raise ValidationFailure("Cannot remove the only owner")
