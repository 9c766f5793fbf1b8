"""
Password hashing with Argon2id (argon2-cffi).

Cost parameters come from Settings and are never influenced by request input.
"""
import asyncio
from typing import Protocol

from argon2 import PasswordHasher as _Argon2
from argon2.exceptions import InvalidHashError as _Argon2InvalidHash
from argon2.exceptions import VerificationError, VerifyMismatchError

from core.config import Settings


class InvalidHashError(ValueError):
    """Raised when a stored hash string cannot be parsed."""


class PasswordHasher(Protocol):
    """Capability interface for credential hashing."""

    def hash(self, plaintext: str) -> str: ...

    def verify(self, plaintext: str, hashed: str) -> bool: ...

    async def hash_async(self, plaintext: str) -> str: ...

    async def verify_async(self, plaintext: str, hashed: str) -> bool: ...

    def needs_rehash(self, hashed: str) -> bool: ...


class Argon2PasswordHasher:
    """Hash and verify user passwords using Argon2id."""

    def __init__(
        self,
        memory_cost: int = 19456,
        time_cost: int = 2,
        parallelism: int = 1,
    ) -> None:
        self._hasher = _Argon2(
            memory_cost=memory_cost,
            time_cost=time_cost,
            parallelism=parallelism,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Argon2PasswordHasher":
        """Build a hasher from the configured cost parameters."""
        return cls(
            memory_cost=settings.argon2_memory_cost,
            time_cost=settings.argon2_time_cost,
            parallelism=settings.argon2_parallelism,
        )

    def hash(self, plaintext: str) -> str:
        return self._hasher.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        """
        Return True if plaintext matches the hash.

        A mismatch returns False. A malformed hash raises InvalidHashError, since
        that points at corrupt data rather than a wrong password.
        """
        try:
            return self._hasher.verify(hashed, plaintext)
        except VerifyMismatchError:
            return False
        except _Argon2InvalidHash as exc:
            raise InvalidHashError("Stored password hash is malformed") from exc
        except VerificationError:
            return False

    def needs_rehash(self, hashed: str) -> bool:
        """True if the hash was produced with different cost parameters."""
        try:
            return self._hasher.check_needs_rehash(hashed)
        except _Argon2InvalidHash as exc:
            raise InvalidHashError("Stored password hash is malformed") from exc

    async def hash_async(self, plaintext: str) -> str:
        """Hash in a worker thread so the event loop is not blocked."""
        return await asyncio.to_thread(self.hash, plaintext)

    async def verify_async(self, plaintext: str, hashed: str) -> bool:
        """Verify in a worker thread so the event loop is not blocked."""
        return await asyncio.to_thread(self.verify, plaintext, hashed)
