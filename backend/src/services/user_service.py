"""Service layer for user accounts."""
import logging
from datetime import UTC, datetime
from uuid import UUID

from uuid6 import uuid7

from core.hashing import PasswordHasher
from schemas.user import UserEntity, UserRole
from services.exceptions import NotFoundError
from services.user_store import UserStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100
MAX_PAGE = 1_000_000  # keeps (page - 1) * MAX_LIMIT within a 64-bit OFFSET


class UserService:
    """Create, look up, and modify users. Passwords are hashed here and nowhere else."""

    def __init__(self, store: UserStore, hasher: PasswordHasher) -> None:
        self._store = store
        self._hasher = hasher

    async def create(
        self,
        username: str,
        email: str,
        password: str,
        role: UserRole | None = None,
    ) -> UserEntity:
        """
        Hash the password and persist a new user.

        Raises:
            ConflictError: If the email is already registered.
        """
        now = datetime.now(UTC)
        user = UserEntity(
            id=uuid7(),
            username=username,
            email=email,
            password=await self._hasher.hash_async(password),
            role=role or "user",
            created_at=now,
            updated_at=now,
        )
        saved = await self._store.save(user)
        logger.info("user_created", extra={"user_id": str(saved.id)})
        return saved

    async def find_by_email(self, email: str) -> UserEntity | None:
        return await self._store.find_by_email(email.strip().lower())

    async def find_by_id(self, user_id: UUID) -> UserEntity | None:
        return await self._store.find_by_id(user_id)

    async def list(self, limit: int | None = None, offset: int | None = None) -> list[UserEntity]:
        """Return a page of users, newest first. ``limit`` is clamped to 1..MAX_LIMIT."""
        limit, offset = clamp_page(limit, offset)
        return await self._store.find_all(limit, offset)

    async def count(self) -> int:
        return await self._store.count()

    async def update_password(self, user_id: UUID, new_password: str) -> UserEntity:
        """
        Rehash and store a new password.

        Raises:
            NotFoundError: If the user does not exist.
        """
        if await self._store.find_by_id(user_id) is None:
            raise NotFoundError("User not found")
        hashed = await self._hasher.hash_async(new_password)
        updated = await self._store.update(user_id, {"password": hashed})
        logger.info("user_password_changed", extra={"user_id": str(user_id)})
        return updated

    async def delete(self, user_id: UUID) -> None:
        await self._store.delete(user_id)
        logger.info("user_deleted", extra={"user_id": str(user_id)})


def clamp_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    """Apply the default page size, cap it at MAX_LIMIT, and floor offset at 0."""
    if limit is None:
        limit = DEFAULT_LIMIT
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset or 0)
    return limit, offset
