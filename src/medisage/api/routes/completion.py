"""Completion proxy endpoint.

Forwards a conversation to the completion provider with retry, backoff and
model fallback (see CompletionService). Error statuses:

- 400: malformed body (no messages array)
- 500: no provider API key configured
- 503: every attempt failed; ``details`` carries the last error
"""

from fastapi import APIRouter, Request

from medisage.api.deps import get_completion_service
from medisage.api.ratelimit import RATE_LIMIT_AI, limiter
from medisage.api.schemas import (
    CompletionChoice,
    CompletionChoiceMessage,
    CompletionRequest,
    CompletionResponse,
)

router = APIRouter(tags=["Completion"])


@router.post("/ai-completion", response_model=CompletionResponse)
@limiter.limit(RATE_LIMIT_AI)
async def ai_completion(request: Request, body: CompletionRequest) -> CompletionResponse:
    """Return the provider's completion for a conversation."""
    service = get_completion_service(request)
    result = await service.complete(body.messages, model=body.model)

    return CompletionResponse(
        choices=[CompletionChoice(message=CompletionChoiceMessage(content=result.content))],
        model=result.model,
        usage=result.usage,
    )
