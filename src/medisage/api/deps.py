"""FastAPI dependencies for API routes.

Shared clients are built once per app and kept on ``app.state``; tests
replace them by assigning fakes to the same attributes.
"""

from fastapi import Request

from medisage.api.middleware.auth import (
    CurrentUser,
    OptionalUser,
    get_current_user,
    get_optional_user,
)
from medisage.config import get_settings
from medisage.domain.chat.completion import CompletionService
from medisage.domain.chat.history import ChatHistoryWriter
from medisage.infrastructure.ai.openrouter import OpenRouterClient
from medisage.infrastructure.database.connection import get_session_factory
from medisage.infrastructure.storage.remote import RemoteFileFetcher


def get_completion_service(request: Request) -> CompletionService:
    """Get the app's completion service.

    Raises:
        ConfigurationError: If no provider API key is configured
    """
    service = getattr(request.app.state, "completion_service", None)
    if service is None:
        settings = get_settings()
        service = CompletionService(OpenRouterClient(settings), settings)
        request.app.state.completion_service = service
    return service


def get_chat_history_writer(request: Request) -> ChatHistoryWriter:
    writer = getattr(request.app.state, "chat_history", None)
    if writer is None:
        writer = ChatHistoryWriter(get_session_factory())
        request.app.state.chat_history = writer
    return writer


def get_file_fetcher(request: Request) -> RemoteFileFetcher:
    fetcher = getattr(request.app.state, "file_fetcher", None)
    if fetcher is None:
        settings = get_settings()
        fetcher = RemoteFileFetcher(
            timeout=settings.file_proxy_timeout,
            allowed_hosts=settings.file_proxy_allowed_hosts,
        )
        request.app.state.file_fetcher = fetcher
    return fetcher


__all__ = [
    "CurrentUser",
    "OptionalUser",
    "get_chat_history_writer",
    "get_completion_service",
    "get_current_user",
    "get_file_fetcher",
    "get_optional_user",
]
