"""User-facing chat endpoint.

Always answers 200 with renderable text: provider outages become an
apology reply and unexpected errors an error reply, never a 5xx. Only a
body without a messages array is refused with a 400.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from medisage.api.deps import OptionalUser, get_chat_history_writer, get_completion_service
from medisage.api.ratelimit import RATE_LIMIT_AI, limiter
from medisage.api.schemas import ChatRequest, ChatResponse
from medisage.config import get_settings
from medisage.domain.chat.completion import CompletionService
from medisage.domain.chat.service import ERROR_REPLY, ChatService
from medisage.shared.exceptions import ConfigurationError, ValidationError
from medisage.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Chat"])


def _completion_or_none(request: Request) -> CompletionService | None:
    try:
        return get_completion_service(request)
    except ConfigurationError as e:
        logger.error("completion_config_error", error=e.message)
        return None


def _error_reply() -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content={"error": "Internal server error", "response": ERROR_REPLY},
    )


@router.post("/chat", response_model=ChatResponse)
@limiter.limit(RATE_LIMIT_AI)
async def chat(request: Request, user: OptionalUser) -> ChatResponse | JSONResponse:
    """Answer a conversation as MediSage.

    Signed-in users with a chatId get the turn saved to their chat history.
    A body without a messages array is a 400; every other failure, including
    unparseable JSON, gets the error reply.
    """
    try:
        raw = await request.json()
    except ValueError as e:
        logger.warning("chat_body_unparseable", error=str(e))
        return _error_reply()

    if not isinstance(raw, dict) or not isinstance(raw.get("messages"), list):
        raise ValidationError("Messages array is required")

    try:
        body = ChatRequest.model_validate(raw)
        service = ChatService(
            completion=_completion_or_none(request),
            history=get_chat_history_writer(request),
            model=get_settings().completion_model,
        )
        response = await service.reply(
            body.messages,
            user=user,
            chat_id=body.chat_id,
            claimed_user_id=body.user_id,
        )
    except Exception as e:
        logger.exception("chat_error", error=str(e))
        return _error_reply()

    return ChatResponse(success=True, response=response)
