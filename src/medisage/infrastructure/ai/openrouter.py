"""OpenRouter API client wrapper (OpenAI-compatible)."""

from typing import Any

import openai
from openai import AsyncOpenAI

from medisage.config import Settings, get_settings
from medisage.shared.exceptions import (
    ConfigurationError,
    UpstreamStatusError,
    UpstreamTransportError,
)
from medisage.shared.logging import get_logger

logger = get_logger(__name__)


def _error_message(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return "Unknown error"


class OpenRouterClient:
    """Single-shot chat completion calls against OpenRouter.

    SDK-level retries are disabled: retrying, backoff and model fallback are
    owned by CompletionService. Every provider failure is translated into a
    CompletionAttemptError subclass.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        if not settings.openrouter_api_key:
            raise ConfigurationError("OPENROUTER_API_KEY is not configured")

        self.client = AsyncOpenAI(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            timeout=settings.completion_timeout,
            max_retries=0,
            default_headers={
                "HTTP-Referer": settings.app_public_url,
                "X-Title": settings.app_title,
            },
        )
        self.temperature = settings.completion_temperature
        self.max_tokens = settings.completion_max_tokens

    async def create_chat_completion(
        self,
        model: str,
        messages: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Send one completion request and return the raw response payload.

        Raises:
            UpstreamStatusError: Provider answered with a non-2xx status
            UpstreamTransportError: Provider could not be reached
        """
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APIStatusError as e:
            raise UpstreamStatusError(
                f"OpenRouter API error: {e.status_code} - {_error_message(e)}",
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            raise UpstreamTransportError(f"OpenRouter request failed: {e}") from e

        return response.model_dump()

    async def close(self) -> None:
        await self.client.close()
