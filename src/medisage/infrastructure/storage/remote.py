"""Fetching remotely stored files (attachment blobs) for the file proxy."""

from collections.abc import Collection
from urllib.parse import urlsplit

import httpx

from medisage.shared.exceptions import FileFetchError, NotFoundError, ValidationError
from medisage.shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
ALLOWED_SCHEMES = frozenset({"http", "https"})


def is_allowed_host(host: str | None, allowed_hosts: Collection[str]) -> bool:
    """An empty allow-list admits every host; otherwise exact or subdomain match."""
    if not allowed_hosts:
        return True
    if not host:
        return False
    host = host.lower().rstrip(".")
    return any(host == allowed or host.endswith(f".{allowed}") for allowed in allowed_hosts)


def validate_remote_url(url: str | None, allowed_hosts: Collection[str] = ()) -> str:
    """Require an absolute http(s) URL on an allowed host.

    Raises:
        ValidationError: If the URL is missing, not http(s) or on a foreign host
    """
    if not url:
        raise ValidationError("URL parameter is required")
    parts = urlsplit(url)
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.netloc:
        raise ValidationError("URL must be an absolute http(s) URL", details={"url": url})
    if not is_allowed_host(parts.hostname, allowed_hosts):
        raise ValidationError("URL host is not allowed", details={"url": url})
    return url


class RemoteFileFetcher:
    """Opens streaming GET requests against remote file URLs.

    With ``allowed_hosts`` set, every request, redirect hops included, must
    target one of those hosts.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        allowed_hosts: Collection[str] = (),
    ) -> None:
        self.timeout = timeout
        self.allowed_hosts = tuple(allowed_hosts)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _check_host(self, request: httpx.Request) -> None:
        if not is_allowed_host(request.url.host, self.allowed_hosts):
            logger.warning("file_fetch_host_rejected", url=str(request.url))
            raise ValidationError("URL host is not allowed", details={"url": str(request.url)})

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
                event_hooks={"request": [self._check_host]},
            )
        return self._client

    async def open(self, url: str) -> httpx.Response:
        """Start downloading a file; the caller must close the response.

        Returns:
            Response whose body has not been read yet

        Raises:
            NotFoundError: Upstream answered with a non-success status
            FileFetchError: Upstream could not be reached
        """
        client = await self._get_client()
        request = client.build_request("GET", url)

        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error("file_fetch_failed", url=url, error=str(e))
            raise FileFetchError(f"Failed to fetch file: {e}") from e

        if not response.is_success:
            await response.aclose()
            logger.warning("file_fetch_unsuccessful", url=url, status_code=response.status_code)
            raise NotFoundError("File", url)

        return response

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
