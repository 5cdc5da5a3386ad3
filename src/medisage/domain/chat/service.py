"""User-facing chat service.

The chat reply path never fails: when the completion provider cannot
produce an answer the user gets FALLBACK_REPLY instead of an error.
"""

from collections.abc import Sequence

from medisage.domain.chat.completion import CompletionService
from medisage.domain.chat.history import ChatHistoryWriter
from medisage.domain.chat.types import ChatMessage
from medisage.infrastructure.ai.prompts import MedicalAssistantPromptV1
from medisage.infrastructure.auth.verifier import SessionUser
from medisage.observability.metrics import CHAT_FALLBACK_REPLIES
from medisage.shared.exceptions import UpstreamExhaustedError
from medisage.shared.logging import get_logger

logger = get_logger(__name__)

FALLBACK_REPLY = (
    "I'm sorry, I'm having trouble connecting to my AI service right now. "
    "Please try again in a moment."
)
ERROR_REPLY = "I'm sorry, there was an error processing your request. Please try again."


def last_user_message(messages: Sequence[ChatMessage]) -> ChatMessage | None:
    for message in reversed(messages):
        if message.role == "user":
            return message
    return None


class ChatService:
    """Answers a conversation with the medical system prompt and stores the turn.

    Args:
        completion: Completion service, or None when no provider is configured
        history: Writer for persisted chats, or None to skip persistence
        model: Model to request (default: the completion service's default)
    """

    def __init__(
        self,
        completion: CompletionService | None,
        history: ChatHistoryWriter | None = None,
        model: str | None = None,
    ) -> None:
        self.completion = completion
        self.history = history
        self.model = model
        self.prompt = MedicalAssistantPromptV1()

    async def reply(
        self,
        messages: Sequence[ChatMessage],
        *,
        user: SessionUser | None = None,
        chat_id: str | None = None,
        claimed_user_id: str | None = None,
    ) -> str:
        """Produce the assistant's reply for a conversation.

        The turn is persisted only for a signed-in user with a chat id;
        claimed_user_id from the request body is used for logging only.
        """
        effective_user_id = user.id if user else claimed_user_id or "anonymous"
        logger.info(
            "chat_request",
            user_id=effective_user_id,
            chat_id=chat_id,
            message_count=len(messages),
        )

        system = ChatMessage(role="system", content=self.prompt.render_system())
        response = await self._generate([system, *messages])

        if user is not None and chat_id and self.history is not None:
            user_message = last_user_message(messages)
            if user_message is not None:
                await self.history.record_turn(user, chat_id, user_message, response)

        return response

    async def _generate(self, conversation: list[ChatMessage]) -> str:
        if self.completion is None:
            logger.error("completion_not_configured")
            CHAT_FALLBACK_REPLIES.inc()
            return FALLBACK_REPLY

        try:
            result = await self.completion.complete(conversation, model=self.model)
        except UpstreamExhaustedError as e:
            logger.error(
                "chat_completion_failed",
                attempts=e.attempts,
                error=e.last_error_message,
            )
            CHAT_FALLBACK_REPLIES.inc()
            return FALLBACK_REPLY

        return result.content
