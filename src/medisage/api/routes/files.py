"""Authenticated proxy for remotely stored files (chat attachments)."""

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from medisage.api.deps import CurrentUser, get_file_fetcher
from medisage.api.ratelimit import RATE_LIMIT_FILES, limiter
from medisage.config import get_settings
from medisage.infrastructure.storage.remote import DEFAULT_CONTENT_TYPE, validate_remote_url
from medisage.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Files"])

CACHE_CONTROL = "public, max-age=31536000"


@router.get("/view-file", response_class=StreamingResponse)
@limiter.limit(RATE_LIMIT_FILES)
async def view_file(
    request: Request,
    user: CurrentUser,
    url: str | None = None,
) -> StreamingResponse:
    """Stream the file at ``url`` back with its original content type."""
    target = validate_remote_url(url, get_settings().file_proxy_allowed_hosts)
    upstream = await get_file_fetcher(request).open(target)

    logger.debug("file_proxied", url=target, user_id=user.id)

    return StreamingResponse(
        upstream.aiter_bytes(),
        media_type=upstream.headers.get("content-type", DEFAULT_CONTENT_TYPE),
        headers={"Cache-Control": CACHE_CONTROL},
        background=BackgroundTask(upstream.aclose),
    )
