"""Persistent user storage."""
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.user import User
from schemas.user import UserEntity
from services.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

# Columns an update may change. id and created_at are immutable.
UPDATABLE_FIELDS = frozenset({"username", "email", "password", "role", "updated_at"})


class UserStore(Protocol):
    """Capability interface for user persistence, implemented by the store and the cache proxy."""

    async def save(self, user: UserEntity) -> UserEntity: ...

    async def find_by_id(self, user_id: UUID) -> UserEntity | None: ...

    async def find_by_email(self, email: str) -> UserEntity | None: ...

    async def find_all(self, limit: int, offset: int) -> list[UserEntity]: ...

    async def count(self) -> int: ...

    async def update(self, user_id: UUID, changes: Mapping[str, Any]) -> UserEntity: ...

    async def delete(self, user_id: UUID) -> None: ...


class SqlAlchemyUserStore:
    """
    UserStore backed by SQLAlchemy.

    Each call runs in its own short transaction. Email uniqueness is enforced by
    the database's unique index; an IntegrityError surfaces as ConflictError.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, user: UserEntity) -> UserEntity:
        row = User(**user.model_dump())
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.info("user_save_conflict", extra={"email": user.email})
                raise ConflictError("User with this email already exists") from e
            return UserEntity.model_validate(row)

    async def find_by_id(self, user_id: UUID) -> UserEntity | None:
        async with self._session_factory() as session:
            row = await session.get(User, user_id)
            return UserEntity.model_validate(row) if row else None

    async def find_by_email(self, email: str) -> UserEntity | None:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.email == email))
            row = result.scalar_one_or_none()
            return UserEntity.model_validate(row) if row else None

    async def find_all(self, limit: int, offset: int) -> list[UserEntity]:
        """Return a page of users, newest first."""
        query = (
            select(User)
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [UserEntity.model_validate(row) for row in result.scalars()]

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(User))
            return result.scalar_one()

    async def update(self, user_id: UUID, changes: Mapping[str, Any]) -> UserEntity:
        """
        Apply ``changes`` to an existing user and bump updated_at.

        Raises:
            NotFoundError: If no user has ``user_id``.
            ConflictError: If the new email is taken.
            ValueError: If ``changes`` names an immutable or unknown field.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        async with self._session_factory() as session:
            row = await session.get(User, user_id)
            if row is None:
                raise NotFoundError("User not found")
            for field, value in changes.items():
                setattr(row, field, value)
            if "updated_at" not in changes:
                row.updated_at = datetime.now(UTC)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError("User with this email already exists") from e
            return UserEntity.model_validate(row)

    async def delete(self, user_id: UUID) -> None:
        async with self._session_factory() as session:
            result = await session.execute(delete(User).where(User.id == user_id))
            if result.rowcount == 0:
                raise NotFoundError("User not found")
            await session.commit()
