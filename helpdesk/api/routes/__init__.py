"""Route modules exposed by the API package."""

from . import auth, health, orgs, tickets

__all__ = ["auth", "health", "orgs", "tickets"]
