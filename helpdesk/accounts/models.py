from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from helpdesk.orgs.models import Organization


@dataclass(slots=True)
class User:
    """Public view of an account; the password hash never leaves the repository."""

    id: str
    email: str
    name: str
    created_at: datetime


@dataclass(slots=True)
class SessionTokens:
    access_token: str
    refresh_token: str


@dataclass(slots=True)
class SignupResult:
    user: User
    organization: Organization
    tokens: SessionTokens


@dataclass(slots=True)
class LoginResult:
    user: User
    tokens: SessionTokens
