from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .policy import Role


@dataclass(slots=True)
class Organization:
    """Tenant boundary."""

    id: str
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class Membership:
    """The (user, organization, role) binding granting access."""

    id: str
    user_id: str
    organization_id: str
    role: Role
    joined_at: datetime


@dataclass(slots=True)
class OrganizationSummary:
    """An organization as seen by one of its members."""

    organization: Organization
    role: Role
    joined_at: datetime


@dataclass(slots=True)
class Member:
    """Membership joined with the member's public user fields."""

    membership_id: str
    user_id: str
    email: str
    name: str
    role: Role
    joined_at: datetime
