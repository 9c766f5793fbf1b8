"""Pydantic schemas for users: the domain entity, request inputs, and responses."""
from datetime import UTC, datetime
from typing import Literal
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

UserRole = Literal["user", "admin", "moderator"]


class UserEntity(BaseModel):
    """
    Domain representation of a user, shared by services, the store, and the cache.

    IMPORTANT: When adding, removing, or renaming fields in this class, you MUST bump
    CACHE_SCHEMA_VERSION in core/user_cache.py so entries written with the old shape
    are never read back.

    ``password`` holds the Argon2 hash. Never return this model from an endpoint;
    convert it to UserResponse.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    password: str
    role: UserRole = "user"
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        """SQLite hands back naive datetimes; all timestamps are UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class RegisterUserInput(BaseModel):
    """Body for POST /sign-up and POST /users."""

    username: str = Field(min_length=3, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=255)

    @field_validator("username", "email", mode="before")
    @classmethod
    def normalize(cls, value: object) -> object:
        """Trim and lowercase; non-strings are left for type validation to reject."""
        if isinstance(value, str):
            return value.strip().lower()
        return value


class LoginInput(BaseModel):
    """Body for POST /sign-in."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def normalize(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class PasswordChangeInput(BaseModel):
    """Body for PATCH /users/me/password."""

    password: str = Field(min_length=8, max_length=255)


class CamelModel(BaseModel):
    """Response model serialized with camelCase keys."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class UserResponse(CamelModel):
    """
    Public view of a user.

    Does NOT include the password hash.
    """

    id: UUID
    username: str
    email: str
    role: UserRole
    created_at: datetime
    updated_at: datetime


class TokenPairResponse(CamelModel):
    """Tokens issued on sign-in."""

    access_token: str
    refresh_token: str
