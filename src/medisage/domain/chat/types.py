"""Chat message types shared by the API layer, the completion service and the chat store."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class Attachment(BaseModel):
    """Reference to externally stored content attached to a message."""

    type: Literal["image", "document"]
    url: str | None = None
    name: str | None = None


class ChatMessage(BaseModel):
    """A message in the chat conversation."""

    role: Literal["system", "user", "assistant"]
    content: str = ""
    attachments: list[Attachment] | None = None

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)


class CompletionResult(BaseModel):
    """Successful outcome of a completion call sequence."""

    content: str
    model: str
    usage: dict[str, Any] | None = None
    attempts: int = Field(default=1, ge=1)
