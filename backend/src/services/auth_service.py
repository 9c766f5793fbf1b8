"""Service layer for credential checks and token issuance."""
import logging
from dataclasses import dataclass

from core.hashing import PasswordHasher
from core.tokens import TokenClaims, TokenSigner, TokenType
from schemas.user import UserEntity
from services.exceptions import UnauthorizedError
from services.user_service import UserService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh tokens issued together on sign-in."""

    access_token: str
    refresh_token: str


class AuthService:
    """
    Verifies credentials and issues or checks signed tokens.

    Unknown email and wrong password fail with the same UnauthorizedError, and an
    unknown email still pays for one Argon2 verification so response timing does
    not reveal whether an account exists.
    """

    def __init__(
        self,
        users: UserService,
        hasher: PasswordHasher,
        signer: TokenSigner,
        access_ttl: int,
        refresh_ttl: int,
    ) -> None:
        self._users = users
        self._hasher = hasher
        self._signer = signer
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._dummy_hash: str | None = None

    async def authenticate(self, email: str, password: str) -> UserEntity:
        """
        Return the user whose credentials match.

        Raises:
            UnauthorizedError: "Invalid credentials" for any mismatch.
        """
        user = await self._users.find_by_email(email)
        if user is None:
            await self._hasher.verify_async(password, await self._get_dummy_hash())
            logger.info("login_failed", extra={"reason": "unknown_email"})
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not await self._hasher.verify_async(password, user.password):
            logger.info(
                "login_failed",
                extra={"reason": "bad_password", "user_id": str(user.id)},
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        # Upgrade hashes made with older Argon2 cost settings.
        if self._hasher.needs_rehash(user.password):
            user = await self._users.update_password(user.id, password)
            logger.info("password_rehashed", extra={"user_id": str(user.id)})
        return user

    async def validate_credentials(self, email: str, password: str) -> bool:
        """True when credentials match; otherwise raises UnauthorizedError."""
        await self.authenticate(email, password)
        return True

    def generate_tokens(self, subject_id: str, role: str = "user") -> TokenPair:
        return TokenPair(
            access_token=self._signer.sign(
                subject_id, role, self._access_ttl, TokenType.ACCESS,
            ),
            refresh_token=self._signer.sign(
                subject_id, role, self._refresh_ttl, TokenType.REFRESH,
            ),
        )

    def verify_token(self, token: str) -> bool:
        return self._signer.verify(token)

    def decode_token(self, token: str) -> TokenClaims:
        """
        Return verified claims.

        Raises:
            UnauthorizedError: If the token is malformed, tampered with, or expired.
        """
        claims = self._signer.decode(token)
        if claims is None:
            raise UnauthorizedError("Invalid or expired token")
        return claims

    async def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = await self._hasher.hash_async("timing-equalization-placeholder")
        return self._dummy_hash
