"""Rate limiting configuration for API endpoints.

Uses slowapi with in-process storage; each worker limits independently.
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from medisage.shared.logging import get_logger

logger = get_logger(__name__)


def _get_rate_limit_key(request: Request) -> str:
    """Get rate limit key based on user or IP.

    For authenticated requests, use user_id.
    For unauthenticated requests, use IP address.
    """
    # Set by the get_current_user dependency
    if hasattr(request.state, "user") and request.state.user:
        return f"user:{request.state.user.id}"

    return get_remote_address(request)


def _create_limiter(storage_uri: str = "memory://") -> Limiter:
    """Create rate limiter with the given storage backend."""
    return Limiter(
        key_func=_get_rate_limit_key,
        storage_uri=storage_uri,
        strategy="fixed-window",
    )


limiter = _create_limiter("memory://")

# Endpoints whose clients render a "response" string even on errors
CHAT_REPLY_PATHS = frozenset({"/api/chat"})
RATE_LIMITED_REPLY = (
    "You are sending messages faster than I can answer. "
    "Please wait a moment and try again."
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Custom handler for rate limit exceeded errors.

    The chat endpoint keeps its 200-with-reply contract and gets a reply the
    client can render in the conversation.
    """
    retry_after = getattr(exc, "retry_after", 60)
    logger.warning(
        "rate_limit_exceeded",
        path=request.url.path,
        method=request.method,
        key=_get_rate_limit_key(request),
        limit=str(exc.detail),
    )

    content: dict[str, object] = {
        "error": "too_many_requests",
        "message": "Too many requests. Please wait a moment.",
        "detail": str(exc.detail),
        "retry_after": retry_after,
    }
    status_code = 429
    if request.url.path in CHAT_REPLY_PATHS:
        content["response"] = RATE_LIMITED_REPLY
        status_code = 200

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={
            "Retry-After": str(retry_after),
        },
    )


# ----- Rate Limits -----
# Usage: @limiter.limit(RATE_LIMIT_AI)

RATE_LIMIT_AI = "20/minute"              # Completion-backed endpoints (expensive)
RATE_LIMIT_FILES = "60/minute"           # File proxy
