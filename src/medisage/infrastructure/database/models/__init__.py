"""SQLAlchemy models."""

from medisage.infrastructure.database.models.base import Base, TimestampMixin
from medisage.infrastructure.database.models.chat import ChatRecord

__all__ = [
    "Base",
    "ChatRecord",
    "TimestampMixin",
]
