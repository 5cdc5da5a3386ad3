"""Completion service: resilient calls to the completion provider.

One call sequence makes up to ``max_attempts`` sequential attempts:

- a 400 from a Gemini-family model on the first attempt switches to the
  fallback model and retries at once;
- 401/403 stop immediately;
- any other failure (transport, non-2xx, malformed body) waits
  min(1s * 2^(n-1), 5s) before attempt n+1.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from medisage.config import Settings, get_settings
from medisage.domain.chat.multimodal import normalize_messages
from medisage.domain.chat.types import ChatMessage, CompletionResult
from medisage.observability.metrics import COMPLETION_ATTEMPTS
from medisage.shared.exceptions import (
    CompletionAttemptError,
    FallbackModelSelected,
    MalformedCompletionError,
    UpstreamExhaustedError,
    UpstreamStatusError,
)
from medisage.shared.logging import get_logger

logger = get_logger(__name__)

BACKOFF_BASE_SECONDS = 1.0
BACKOFF_MAX_SECONDS = 5.0
NON_RETRYABLE_STATUS_CODES = frozenset({401, 403})
OTHER_MODEL_LABEL = "other"


class CompletionProvider(Protocol):
    """Protocol for completion provider clients."""

    async def create_chat_completion(
        self,
        model: str,
        messages: list[dict[str, Any]],
    ) -> dict[str, Any]: ...


def is_fallback_eligible(model: str) -> bool:
    """Models whose request-validation errors trigger the fallback model."""
    return "gemini" in model.lower()


def extract_content(payload: dict[str, Any]) -> str:
    """Return choices[0].message.content or raise MalformedCompletionError."""
    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not choices or not isinstance(choices, list):
        raise MalformedCompletionError("Invalid response format from OpenRouter: no choices")

    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise MalformedCompletionError("Invalid response format from OpenRouter: empty message")

    return content


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, CompletionAttemptError):
        return exc.status_code not in NON_RETRYABLE_STATUS_CODES
    return False


_exponential = wait_exponential(multiplier=BACKOFF_BASE_SECONDS, max=BACKOFF_MAX_SECONDS)


def backoff_delay(retry_state: RetryCallState) -> float:
    """Seconds to wait before the next attempt.

    The fallback-model switch is free; everything else uses the exponential
    schedule keyed on the attempt that just failed.
    """
    outcome = retry_state.outcome
    if outcome is not None and isinstance(outcome.exception(), FallbackModelSelected):
        return 0.0
    return _exponential(retry_state)


def _log_retry(retry_state: RetryCallState) -> None:
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    if delay > 0:
        logger.info(
            "completion_retry_scheduled",
            attempt=retry_state.attempt_number,
            delay_ms=int(delay * 1000),
        )


class CompletionService:
    """Resilient completion calls with bounded retry and model fallback.

    Usage:
        service = CompletionService(OpenRouterClient())
        result = await service.complete(messages)
        print(result.content)
    """

    def __init__(
        self,
        client: CompletionProvider,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = settings or get_settings()
        self.client = client
        self.default_model = settings.completion_model
        self.fallback_model = settings.completion_fallback_model
        self._labelled_models = frozenset({self.default_model, self.fallback_model})
        self.max_attempts = settings.completion_max_attempts
        self._sleep = sleep

    def _metric_model(self, model: str) -> str:
        """Metric label for a model; caller-chosen models share one series."""
        return model if model in self._labelled_models else OTHER_MODEL_LABEL

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        model: str | None = None,
        max_attempts: int | None = None,
    ) -> CompletionResult:
        """Run one completion call sequence.

        Args:
            messages: Conversation, oldest first
            model: Model to start with (default from settings)
            max_attempts: Attempt budget (default from settings)

        Returns:
            CompletionResult with the assistant text and the model that produced it

        Raises:
            UpstreamExhaustedError: No attempt succeeded; carries the last error
        """
        payload = normalize_messages(messages)
        model = model or self.default_model
        attempts = max_attempts or self.max_attempts
        attempt_number = 0
        result: CompletionResult | None = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=backoff_delay,
            retry=retry_if_exception(_is_transient),
            before_sleep=_log_retry,
            sleep=self._pause,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    outcome = await self._attempt(payload, model, attempt_number, attempts)
                    if isinstance(outcome, FallbackModelSelected):
                        model = outcome.fallback_model
                        raise outcome
                    result = outcome
        except CompletionAttemptError as e:
            logger.error(
                "completion_exhausted",
                attempts=attempt_number,
                model=model,
                status_code=e.status_code,
                error=e.message,
            )
            raise UpstreamExhaustedError(last_error=e, attempts=attempt_number) from e

        assert result is not None
        return result

    async def _attempt(
        self,
        payload: list[dict[str, Any]],
        model: str,
        attempt_number: int,
        max_attempts: int,
    ) -> CompletionResult | FallbackModelSelected:
        """Make a single attempt.

        Returns FallbackModelSelected instead of raising it so the caller can
        swap its model before the failure is reported to the retry loop.
        """
        logger.info(
            "completion_attempt",
            attempt=attempt_number,
            max_attempts=max_attempts,
            model=model,
        )

        try:
            raw = await self.client.create_chat_completion(model=model, messages=payload)
            content = extract_content(raw)
        except CompletionAttemptError as e:
            COMPLETION_ATTEMPTS.labels(model=self._metric_model(model), outcome="error").inc()
            logger.warning(
                "completion_attempt_failed",
                attempt=attempt_number,
                model=model,
                status_code=e.status_code,
                error=e.message,
            )
            if (
                isinstance(e, UpstreamStatusError)
                and e.status_code == 400
                and attempt_number == 1
                and is_fallback_eligible(model)
            ):
                logger.info(
                    "completion_fallback_model",
                    rejected_model=model,
                    fallback_model=self.fallback_model,
                )
                return FallbackModelSelected(e, self.fallback_model)
            raise

        COMPLETION_ATTEMPTS.labels(model=self._metric_model(model), outcome="success").inc()
        logger.info("completion_succeeded", attempt=attempt_number, model=model)

        return CompletionResult(
            content=content,
            model=model,
            usage=raw.get("usage"),
            attempts=attempt_number,
        )
