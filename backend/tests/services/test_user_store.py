"""Tests for the SQLAlchemy user store."""
from datetime import UTC, datetime, timedelta

import pytest
from uuid6 import uuid7

from schemas.user import UserEntity
from services.exceptions import ConflictError, NotFoundError
from services.user_store import SqlAlchemyUserStore


def make_user(email: str, created_at: datetime | None = None) -> UserEntity:
    now = created_at or datetime.now(UTC)
    return UserEntity(
        id=uuid7(),
        username=email.split("@")[0],
        email=email,
        password="$argon2id$placeholder",
        created_at=now,
        updated_at=now,
    )


class TestSave:
    """Tests for inserting users."""

    async def test__save__round_trips(self, user_store: SqlAlchemyUserStore) -> None:
        user = make_user("a@example.com")

        saved = await user_store.save(user)

        assert saved == user
        assert await user_store.find_by_id(user.id) == user
        assert await user_store.find_by_email("a@example.com") == user

    async def test__timestamps__come_back_timezone_aware(
        self, user_store: SqlAlchemyUserStore,
    ) -> None:
        user = await user_store.save(make_user("a@example.com"))

        loaded = await user_store.find_by_id(user.id)

        assert loaded.created_at.tzinfo is not None
        assert loaded.updated_at >= loaded.created_at

    async def test__duplicate_email__raises_conflict_and_keeps_one_row(
        self, user_store: SqlAlchemyUserStore,
    ) -> None:
        """The unique index, not an application check, rejects the duplicate."""
        await user_store.save(make_user("dup@example.com"))

        with pytest.raises(ConflictError):
            await user_store.save(make_user("dup@example.com"))

        assert await user_store.count() == 1


class TestFind:
    """Tests for lookups and listing."""

    async def test__missing__returns_none(self, user_store: SqlAlchemyUserStore) -> None:
        assert await user_store.find_by_id(uuid7()) is None
        assert await user_store.find_by_email("missing@example.com") is None

    async def test__find_all__newest_first_with_paging(
        self, user_store: SqlAlchemyUserStore,
    ) -> None:
        base = datetime.now(UTC)
        for i, email in enumerate(["a@example.com", "b@example.com", "c@example.com"]):
            await user_store.save(make_user(email, created_at=base + timedelta(seconds=i)))

        first_page = await user_store.find_all(limit=2, offset=0)
        second_page = await user_store.find_all(limit=2, offset=2)

        assert [u.email for u in first_page] == ["c@example.com", "b@example.com"]
        assert [u.email for u in second_page] == ["a@example.com"]
        assert await user_store.count() == 3


class TestUpdate:
    """Tests for modifying users."""

    async def test__update__changes_fields_and_bumps_updated_at(
        self, user_store: SqlAlchemyUserStore,
    ) -> None:
        user = await user_store.save(
            make_user("a@example.com", created_at=datetime.now(UTC) - timedelta(hours=1)),
        )

        updated = await user_store.update(user.id, {"email": "new@example.com"})

        assert updated.email == "new@example.com"
        assert updated.updated_at > user.updated_at
        assert (await user_store.find_by_id(user.id)).email == "new@example.com"

    async def test__update_missing__raises_not_found(
        self, user_store: SqlAlchemyUserStore,
    ) -> None:
        with pytest.raises(NotFoundError):
            await user_store.update(uuid7(), {"username": "ghost"})

    async def test__update_to_taken_email__raises_conflict(
        self, user_store: SqlAlchemyUserStore,
    ) -> None:
        await user_store.save(make_user("a@example.com"))
        b = await user_store.save(make_user("b@example.com"))

        with pytest.raises(ConflictError):
            await user_store.update(b.id, {"email": "a@example.com"})

    async def test__update_immutable_field__rejected(
        self, user_store: SqlAlchemyUserStore,
    ) -> None:
        user = await user_store.save(make_user("a@example.com"))

        with pytest.raises(ValueError, match="id"):
            await user_store.update(user.id, {"id": uuid7()})


class TestDelete:
    """Tests for removing users."""

    async def test__delete__removes_row(self, user_store: SqlAlchemyUserStore) -> None:
        user = await user_store.save(make_user("a@example.com"))

        await user_store.delete(user.id)

        assert await user_store.find_by_id(user.id) is None

    async def test__delete_missing__raises_not_found(
        self, user_store: SqlAlchemyUserStore,
    ) -> None:
        with pytest.raises(NotFoundError):
            await user_store.delete(uuid7())
