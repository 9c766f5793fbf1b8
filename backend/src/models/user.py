"""User model for storing registered accounts."""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin, UUIDv7Mixin


class User(Base, UUIDv7Mixin, TimestampMixin):
    """User model - the authoritative record for an account."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
        comment="Login identifier; uniqueness is enforced here, not only in code",
    )
    password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Argon2id hash, never plaintext",
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="user")
