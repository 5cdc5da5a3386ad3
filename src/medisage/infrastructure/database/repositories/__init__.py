"""Database repositories."""

from medisage.infrastructure.database.repositories.chat import ChatRepository

__all__ = ["ChatRepository"]
