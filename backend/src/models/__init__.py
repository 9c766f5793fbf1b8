"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDv7Mixin",
    "User",
]
