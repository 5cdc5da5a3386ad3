"""Conversion of chat messages into provider (OpenAI-style) message payloads."""

from collections.abc import Iterable
from typing import Any

from medisage.domain.chat.types import ChatMessage


def document_placeholder(name: str | None) -> str:
    """Text stand-in for a document; its content is never inlined."""
    return f"[Document attached: {name}]"


def to_content_parts(message: ChatMessage) -> list[dict[str, Any]]:
    """Build the multi-part content for a user message with attachments.

    Order: the text body (if not blank), then one part per attachment in the
    order they were attached. Images without a URL are skipped.
    """
    parts: list[dict[str, Any]] = []

    if message.content and message.content.strip():
        parts.append({"type": "text", "text": message.content})

    for attachment in message.attachments or []:
        if attachment.type == "image" and attachment.url:
            parts.append({"type": "image_url", "image_url": {"url": attachment.url}})
        elif attachment.type == "document":
            parts.append({"type": "text", "text": document_placeholder(attachment.name)})

    return parts


def to_provider_message(message: ChatMessage) -> dict[str, Any]:
    if message.role == "user" and message.has_attachments:
        parts = to_content_parts(message)
        return {"role": message.role, "content": parts or message.content}

    return {"role": message.role, "content": message.content}


def normalize_messages(messages: Iterable[ChatMessage]) -> list[dict[str, Any]]:
    """Normalize a conversation for the completion provider."""
    return [to_provider_message(message) for message in messages]
