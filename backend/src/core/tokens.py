"""
Signed bearer tokens (JWT, HS256).

decode() always re-validates signature and expiry, so callers never handle
unverified claims; verify() is a boolean view of decode(). Both fail closed.
"""
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Protocol

import jwt

from core.config import Settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenType(StrEnum):
    """Distinguishes access tokens from refresh tokens."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims carried by a token."""

    subject_id: str
    role: str
    token_type: TokenType
    expires_at: datetime
    issued_at: datetime | None = None


class TokenSigner(Protocol):
    """Capability interface for token issuance and verification."""

    def sign(
        self,
        subject_id: str,
        role: str,
        ttl_seconds: int,
        token_type: TokenType = TokenType.ACCESS,
    ) -> str: ...

    def verify(self, token: str) -> bool: ...

    def decode(self, token: str) -> TokenClaims | None: ...


class JwtTokenSigner:
    """HS256 JWT signer backed by PyJWT."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    @classmethod
    def from_settings(cls, settings: Settings) -> "JwtTokenSigner":
        return cls(settings.jwt_secret)

    def sign(
        self,
        subject_id: str,
        role: str,
        ttl_seconds: int,
        token_type: TokenType = TokenType.ACCESS,
    ) -> str:
        """Encode a token expiring ``ttl_seconds`` from now (ttl <= 0 is already expired)."""
        now = datetime.now(UTC)
        payload = {
            "sub": subject_id,
            "role": role,
            "type": token_type.value,
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> TokenClaims | None:
        """Return verified claims, or None on any failure (signature, expiry, shape)."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("token_expired")
            return None
        except jwt.PyJWTError as e:
            logger.debug("token_invalid: %s", e)
            return None

        role = payload.get("role")
        try:
            token_type = TokenType(payload.get("type", TokenType.ACCESS.value))
        except ValueError:
            return None
        if not isinstance(role, str) or not isinstance(payload["sub"], str):
            return None

        issued_at = payload.get("iat")
        return TokenClaims(
            subject_id=payload["sub"],
            role=role,
            token_type=token_type,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
            issued_at=datetime.fromtimestamp(issued_at, tz=UTC) if issued_at else None,
        )

    def verify(self, token: str) -> bool:
        return self.decode(token) is not None
