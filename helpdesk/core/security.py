"""Password hashing and JWT issuing/verification."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import bcrypt
import jwt

from helpdesk.core.config import Settings
from helpdesk.core.errors import Unauthenticated, ValidationFailure

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
MAX_PASSWORD_BYTES = 72


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PasswordHasher:
    """bcrypt wrapper; the work happens in a thread so the event loop stays free."""

    def __init__(self, *, rounds: int = 12) -> None:
        self._rounds = rounds

    async def hash(self, plaintext: str) -> str:
        encoded = plaintext.encode("utf-8")
        # bcrypt only looks at the first 72 bytes
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValidationFailure(
                "Password is too long",
                details={"password": [f"must be at most {MAX_PASSWORD_BYTES} bytes"]},
            )
        try:
            digest = await asyncio.to_thread(bcrypt.hashpw, encoded, bcrypt.gensalt(rounds=self._rounds))
        except ValueError as exc:
            raise ValidationFailure("Password could not be hashed", details={"password": [str(exc)]}) from exc
        return digest.decode("utf-8")

    async def verify(self, plaintext: str, digest: str) -> bool:
        """Return ``True`` on a match; mismatches and malformed digests yield ``False``."""

        try:
            return await asyncio.to_thread(
                bcrypt.checkpw, plaintext.encode("utf-8"), digest.encode("utf-8")
            )
        except ValueError:
            logger.warning("Password verification against a malformed digest")
            return False


@dataclass(slots=True)
class TokenService:
    """Issue and verify short-lived access tokens and long-lived refresh tokens."""

    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    clock: Callable[[], datetime] = field(default=_utcnow)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            access_secret=settings.jwt_access_secret,
            refresh_secret=settings.jwt_refresh_secret,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
        )

    def issue_access(self, user_id: str) -> str:
        return self._encode(user_id, ACCESS_TOKEN_TYPE, self.access_secret, self.access_ttl)

    def issue_refresh(self, user_id: str) -> str:
        return self._encode(user_id, REFRESH_TOKEN_TYPE, self.refresh_secret, self.refresh_ttl)

    def refresh_expiry(self) -> datetime:
        """Expiry to store next to a refresh token issued now."""

        return self.clock() + self.refresh_ttl

    def verify_access(self, token: str) -> str:
        return self._decode(token, ACCESS_TOKEN_TYPE, self.access_secret)

    def verify_refresh(self, token: str) -> str:
        return self._decode(token, REFRESH_TOKEN_TYPE, self.refresh_secret)

    @staticmethod
    def digest(token: str) -> str:
        """Deterministic digest under which refresh tokens are stored."""

        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    def _encode(self, user_id: str, token_type: str, secret: str, ttl: timedelta) -> str:
        issued_at = self.clock()
        payload: dict[str, Any] = {
            "sub": user_id,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": issued_at,
            "exp": issued_at + ttl,
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str, secret: str) -> str:
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "type"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise Unauthenticated("Token has expired") from exc
        except jwt.PyJWTError as exc:
            logger.debug("Rejected %s token: %s", token_type, exc)
            raise Unauthenticated("Invalid or expired token") from exc

        if claims.get("type") != token_type:
            raise Unauthenticated("Invalid or expired token")
        return str(claims["sub"])
