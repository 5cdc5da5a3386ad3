"""Chat record model.

One row per conversation. Messages live in a single JSONB array that is
only ever appended to, so a record reads like a document:

    {
        "chat_id": "c-123",
        "user_id": "u-42",
        "messages": [
            {"role": "user", "content": "...", "attachments": [...], "timestamp": "..."},
            {"role": "assistant", "content": "...", "timestamp": "..."}
        ]
    }
"""

from typing import Any

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from medisage.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


class ChatRecord(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A persisted conversation."""

    __tablename__ = "chats"

    # Client-supplied conversation id
    chat_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    messages: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, default=list, nullable=False)

    def __repr__(self) -> str:
        return f"<ChatRecord {self.chat_id} ({len(self.messages or [])} messages)>"
