"""Organizations, memberships and the role capability table."""

from .membership import MembershipResolver
from .models import Member, Membership, Organization, OrganizationSummary
from .policy import CAPABILITIES, Action, Role, authorize, ensure_owner_remains, is_allowed

__all__ = [
    "CAPABILITIES",
    "Action",
    "Member",
    "Membership",
    "MembershipResolver",
    "Organization",
    "OrganizationSummary",
    "Role",
    "authorize",
    "ensure_owner_remains",
    "is_allowed",
]
