"""Chat domain module.

Modules:
- types: message, attachment and result models
- multimodal: conversion of messages to provider payloads
- completion: CompletionService (retry, backoff, model fallback)
- history: best-effort chat persistence
- service: user-facing ChatService
"""

from medisage.domain.chat.completion import CompletionService
from medisage.domain.chat.history import ChatHistoryWriter
from medisage.domain.chat.service import FALLBACK_REPLY, ChatService
from medisage.domain.chat.types import Attachment, ChatMessage, CompletionResult

__all__ = [
    "Attachment",
    "ChatHistoryWriter",
    "ChatMessage",
    "ChatService",
    "CompletionResult",
    "CompletionService",
    "FALLBACK_REPLY",
]
