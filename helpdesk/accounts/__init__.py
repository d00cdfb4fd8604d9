"""User accounts and session tokens."""

from .models import LoginResult, SessionTokens, SignupResult, User
from .service import AccountService

__all__ = ["AccountService", "LoginResult", "SessionTokens", "SignupResult", "User"]
