"""Best-effort persistence of completed chat turns."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medisage.domain.chat.types import ChatMessage
from medisage.infrastructure.auth.verifier import SessionUser
from medisage.infrastructure.database.repositories.chat import ChatRepository
from medisage.shared.logging import get_logger

logger = get_logger(__name__)


def user_message_document(message: ChatMessage, timestamp: datetime) -> dict[str, Any]:
    document: dict[str, Any] = {
        "role": "user",
        "content": message.content,
        "timestamp": timestamp.isoformat(),
    }
    if message.attachments:
        document["attachments"] = [a.model_dump() for a in message.attachments]
    return document


def assistant_message_document(content: str, timestamp: datetime) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": content,
        "timestamp": timestamp.isoformat(),
    }


class ChatHistoryWriter:
    """Writes one user/assistant turn into the chat store.

    Failures are logged and reported through the return value only; a chat
    answer is never lost because the store is down.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def record_turn(
        self,
        user: SessionUser,
        chat_id: str,
        user_message: ChatMessage,
        assistant_text: str,
    ) -> bool:
        """Append the turn to the chat, creating the chat if needed.

        Returns:
            True if the turn was stored, False if the write failed
        """
        now = datetime.now(UTC)
        documents = [
            user_message_document(user_message, now),
            assistant_message_document(assistant_text, now),
        ]

        try:
            async with self.session_factory() as session:
                await ChatRepository(session).append_messages(chat_id, user.id, documents)
        except Exception as e:
            logger.error(
                "chat_persist_failed",
                chat_id=chat_id,
                user_id=user.id,
                error=getattr(e, "message", None) or str(e),
            )
            return False

        logger.info("chat_persisted", chat_id=chat_id, user_id=user.id)
        return True
