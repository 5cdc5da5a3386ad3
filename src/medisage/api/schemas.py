"""Shared API schemas and base models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from medisage.domain.chat.types import ChatMessage


class APIRequestModel(BaseModel):
    """Base model for request bodies.

    Unknown fields are ignored: chat clients send their UI-side message
    state (ids, timestamps) along with the fields the API reads.
    camelCase aliases and snake_case names are both accepted.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ----- Completion -----


class CompletionRequest(APIRequestModel):
    messages: list[ChatMessage]
    model: str | None = None


class CompletionChoiceMessage(BaseModel):
    content: str


class CompletionChoice(BaseModel):
    message: CompletionChoiceMessage


class CompletionResponse(BaseModel):
    choices: list[CompletionChoice]
    model: str
    usage: dict[str, Any] | None = None


# ----- Chat -----


class ChatRequest(APIRequestModel):
    messages: list[ChatMessage]
    user_id: str | None = Field(default=None, alias="userId")
    chat_id: str | None = Field(default=None, alias="chatId")


class ChatResponse(BaseModel):
    success: bool = True
    response: str
