"""Unit tests for chat persistence.

The repository statement is compiled against the PostgreSQL dialect; no
database is needed.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from medisage.domain.chat.history import (
    ChatHistoryWriter,
    assistant_message_document,
    user_message_document,
)
from medisage.domain.chat.types import Attachment, ChatMessage
from medisage.infrastructure.database.repositories.chat import ChatRepository
from medisage.shared.exceptions import PersistenceError


def session_factory_for(session: AsyncMock) -> MagicMock:
    """async_sessionmaker stand-in yielding the given session."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context)


def session_returning(record_id: str | None = "record-1") -> AsyncMock:
    """Session whose upsert RETURNING yields the given record id."""
    session = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = record_id
    session.execute.return_value = result
    return session


class TestMessageDocuments:
    """Test the stored message shapes."""

    def test_user_message_with_attachments(self):
        timestamp = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        message = ChatMessage(
            role="user",
            content="Look at this",
            attachments=[Attachment(type="image", url="https://files.example/a.png")],
        )

        document = user_message_document(message, timestamp)

        assert document == {
            "role": "user",
            "content": "Look at this",
            "timestamp": "2026-01-02T03:04:05+00:00",
            "attachments": [{"type": "image", "url": "https://files.example/a.png", "name": None}],
        }

    def test_user_message_without_attachments_has_no_key(self):
        document = user_message_document(
            ChatMessage(role="user", content="hi"), datetime.now(UTC)
        )

        assert "attachments" not in document

    def test_assistant_message(self):
        timestamp = datetime(2026, 1, 2, tzinfo=UTC)

        assert assistant_message_document("hello", timestamp) == {
            "role": "assistant",
            "content": "hello",
            "timestamp": "2026-01-02T00:00:00+00:00",
        }


class TestChatRepository:
    """Test the append-or-create statement."""

    def test_statement_is_single_upsert(self):
        repo = ChatRepository(AsyncMock())

        stmt = repo.build_append_statement("chat-1", "user-1", [{"role": "user", "content": "hi"}])
        sql = str(stmt.compile(dialect=postgresql.dialect()))

        assert sql.startswith("INSERT INTO chats")
        assert "ON CONFLICT (chat_id) DO UPDATE" in sql
        assert "chats.messages || excluded.messages" in sql
        assert "WHERE chats.user_id = excluded.user_id" in sql
        assert "RETURNING chats.id" in sql

    @pytest.mark.asyncio
    async def test_append_commits(self):
        session = session_returning()
        repo = ChatRepository(session)

        await repo.append_messages("chat-1", "user-1", [{"role": "user", "content": "hi"}])

        session.execute.assert_awaited_once()
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_database_error_becomes_persistence_error(self):
        session = AsyncMock()
        session.execute.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        repo = ChatRepository(session)

        with pytest.raises(PersistenceError) as exc_info:
            await repo.append_messages("chat-1", "user-1", [])

        session.rollback.assert_awaited_once()
        assert exc_info.value.details["chat_id"] == "chat-1"

    @pytest.mark.asyncio
    async def test_foreign_chat_is_not_appended(self):
        session = session_returning(None)
        repo = ChatRepository(session)

        with pytest.raises(PersistenceError) as exc_info:
            await repo.append_messages("chat-1", "intruder", [{"role": "user", "content": "hi"}])

        assert exc_info.value.message == "Chat belongs to another user"
        assert exc_info.value.details == {"chat_id": "chat-1", "user_id": "intruder"}


class TestChatHistoryWriter:
    """Test best-effort turn recording."""

    @pytest.mark.asyncio
    async def test_record_turn_appends_user_then_assistant(self, session_user):
        session = session_returning()
        writer = ChatHistoryWriter(session_factory_for(session))

        stored = await writer.record_turn(
            session_user, "chat-1", ChatMessage(role="user", content="hi"), "hello"
        )

        assert stored is True
        stmt = session.execute.await_args.args[0]
        params = stmt.compile(dialect=postgresql.dialect()).params
        assert params["chat_id"] == "chat-1"
        assert params["user_id"] == session_user.id
        assert [m["role"] for m in params["messages"]] == ["user", "assistant"]
        assert params["messages"][1]["content"] == "hello"

    @pytest.mark.asyncio
    async def test_record_turn_swallows_failures(self, session_user):
        session = AsyncMock()
        session.execute.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        writer = ChatHistoryWriter(session_factory_for(session))

        stored = await writer.record_turn(
            session_user, "chat-1", ChatMessage(role="user", content="hi"), "hello"
        )

        assert stored is False

    @pytest.mark.asyncio
    async def test_record_turn_on_foreign_chat_reports_failure(self, session_user):
        writer = ChatHistoryWriter(session_factory_for(session_returning(None)))

        stored = await writer.record_turn(
            session_user, "someone-elses-chat", ChatMessage(role="user", content="hi"), "hello"
        )

        assert stored is False
