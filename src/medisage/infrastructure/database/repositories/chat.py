"""Chat record repository."""

from typing import Any

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import JSONB, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from medisage.infrastructure.database.models.chat import ChatRecord
from medisage.shared.exceptions import PersistenceError


class ChatRepository:
    """Append-only access to chat records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def build_append_statement(
        self,
        chat_id: str,
        user_id: str,
        messages: list[dict[str, Any]],
    ) -> Any:
        """INSERT the record, or append to its message array if it exists.

        A single statement keeps concurrent turns on the same chat from
        racing between "does it exist" and "insert". The append only applies
        to the owner's record; a foreign chat_id returns no row.
        """
        stmt = insert(ChatRecord).values(
            chat_id=chat_id,
            user_id=user_id,
            messages=messages,
        )
        return stmt.on_conflict_do_update(
            index_elements=[ChatRecord.chat_id],
            set_={
                "messages": ChatRecord.messages.op("||", return_type=JSONB)(
                    stmt.excluded.messages
                ),
                "updated_at": func.now(),
            },
            where=ChatRecord.user_id == stmt.excluded.user_id,
        ).returning(ChatRecord.id)

    async def append_messages(
        self,
        chat_id: str,
        user_id: str,
        messages: list[dict[str, Any]],
    ) -> None:
        """Append messages to a chat, creating the record on first use.

        Raises:
            PersistenceError: If the write fails or the chat belongs to another user
        """
        try:
            result = await self.session.execute(
                self.build_append_statement(chat_id, user_id, messages)
            )
            record_id = result.scalar_one_or_none()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError(
                "Chat could not be saved",
                details={"chat_id": chat_id, "error": str(e)},
            ) from e

        if record_id is None:
            raise PersistenceError(
                "Chat belongs to another user",
                details={"chat_id": chat_id, "user_id": user_id},
            )
