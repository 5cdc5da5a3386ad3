"""Session-cookie authentication for FastAPI.

AuthorizationGate decides, per request, whether to let it through, send the
caller to the login page, or reject it. SessionAuthMiddleware applies that
decision to every non-static request; get_current_user/get_optional_user are
the route-level dependencies for handlers that need the user itself.
"""

import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Annotated
from urllib.parse import urlencode

from fastapi import Depends, HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, RedirectResponse, Response

from medisage.config import Settings, get_settings
from medisage.infrastructure.auth.verifier import CredentialVerifier, SessionUser
from medisage.shared.exceptions import (
    AuthenticationError,
    TokenExpiredError,
    TokenInvalidError,
)
from medisage.shared.logging import get_logger

logger = get_logger(__name__)

# Pages reachable without a session ("/" matches exactly, the rest by segment)
PUBLIC_PATHS: tuple[str, ...] = (
    "/",
    "/login",
    "/register",
    "/public-chat",
    "/health",
    "/ready",
    "/metrics",
    "/docs",
    "/redoc",
    "/openapi.json",
)

# API prefixes reachable without a session (plain prefix match)
PUBLIC_API_PREFIXES: tuple[str, ...] = ("/api/auth/", "/api/chat")

# Entry points a signed-in user is bounced away from
AUTH_ENTRY_PATHS: tuple[str, ...] = ("/login", "/register")

STATIC_ASSET_PATTERN = re.compile(
    r"^/(?:static/|_next/static/|_next/image|favicon\.ico$)|\.png$"
)


class GateAction(str, Enum):
    """Outcome of the authorization gate."""

    ALLOW = "allow"
    REDIRECT = "redirect"
    REJECT = "reject"


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    location: str | None = None
    status_code: int = 200

    @classmethod
    def allow(cls) -> "GateDecision":
        return cls(GateAction.ALLOW)

    @classmethod
    def redirect(cls, location: str) -> "GateDecision":
        return cls(GateAction.REDIRECT, location=location, status_code=307)

    @classmethod
    def reject(cls) -> "GateDecision":
        return cls(GateAction.REJECT, status_code=401)


def is_static_asset(path: str) -> bool:
    """True for paths the gate never sees (assets, favicon, images)."""
    return STATIC_ASSET_PATTERN.search(path) is not None


class AuthorizationGate:
    """Classifies a request as public or protected and checks its credential.

    The gate is read-only: it never touches the request or any stored state.
    Any exception raised by the verifier counts as an invalid credential.
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        *,
        public_paths: Sequence[str] = PUBLIC_PATHS,
        public_api_prefixes: Sequence[str] = PUBLIC_API_PREFIXES,
        login_path: str = "/login",
        landing_path: str = "/dashboard",
        reject_api_requests: bool = False,
    ) -> None:
        self.verifier = verifier
        self.public_paths = tuple(public_paths)
        self.public_api_prefixes = tuple(public_api_prefixes)
        self.login_path = login_path
        self.landing_path = landing_path
        self.reject_api_requests = reject_api_requests

    def is_public_path(self, path: str) -> bool:
        for public_path in self.public_paths:
            if path == public_path:
                return True
            if public_path != "/" and path.startswith(public_path.rstrip("/") + "/"):
                return True
        return False

    def is_public_api_path(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.public_api_prefixes)

    async def verify(self, token: str | None) -> SessionUser | None:
        """Return the session user, or None for a missing or invalid token."""
        if not token:
            return None
        try:
            return await self.verifier.verify_token(token)
        except AuthenticationError as e:
            logger.info("session_token_rejected", reason=e.message)
            return None
        except Exception as e:
            logger.warning("session_verification_error", error=str(e))
            return None

    def login_redirect(self, url: str) -> GateDecision:
        """Redirect to login, carrying the requested URL as callbackUrl."""
        query = urlencode({"callbackUrl": url})
        return GateDecision.redirect(f"{self.login_path}?{query}")

    async def evaluate(self, path: str, url: str, token: str | None) -> GateDecision:
        """Decide ALLOW / REDIRECT / REJECT for a request.

        Args:
            path: Request path used for classification
            url: Full request URL (becomes the callbackUrl on redirects)
            token: Session cookie value, if any
        """
        if self.is_public_path(path) or self.is_public_api_path(path):
            if token and (path in AUTH_ENTRY_PATHS or path == self.login_path):
                if await self.verify(token) is not None:
                    return GateDecision.redirect(self.landing_path)
            return GateDecision.allow()

        user = await self.verify(token)
        if user is None:
            if self.reject_api_requests and path.startswith("/api/"):
                return GateDecision.reject()
            return self.login_redirect(url)

        return GateDecision.allow()


def build_credential_verifier(settings: Settings) -> CredentialVerifier:
    """Build the configured credential verifier.

    Set AUTH_PROVIDER env var to "dev" for local testing without real tokens.
    """
    if settings.auth_provider == "dev":
        from medisage.infrastructure.auth.dev import DevCredentialVerifier

        return DevCredentialVerifier()

    from medisage.infrastructure.auth.jwt import JWTCredentialVerifier

    return JWTCredentialVerifier(
        secret=settings.auth_jwt_secret,
        algorithm=settings.auth_jwt_algorithm,
    )


def get_credential_verifier(request: Request) -> CredentialVerifier:
    """Get the cached credential verifier (per FastAPI app)."""
    verifier = getattr(request.app.state, "credential_verifier", None)
    if verifier is None:
        verifier = build_credential_verifier(get_settings())
        request.app.state.credential_verifier = verifier
    return verifier


def build_authorization_gate(request: Request) -> AuthorizationGate:
    settings = get_settings()
    return AuthorizationGate(
        get_credential_verifier(request),
        login_path=settings.auth_login_path,
        landing_path=settings.auth_landing_path,
        reject_api_requests=settings.auth_reject_api_requests,
    )


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """Runs the authorization gate in front of every non-static request."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        if is_static_asset(path):
            return await call_next(request)

        gate = build_authorization_gate(request)
        token = request.cookies.get(get_settings().auth_cookie_name)
        decision = await gate.evaluate(path, str(request.url), token)

        if decision.action is GateAction.REDIRECT:
            assert decision.location is not None
            return RedirectResponse(decision.location, status_code=decision.status_code)
        if decision.action is GateAction.REJECT:
            return JSONResponse(
                status_code=decision.status_code,
                content={"error": "Unauthorized"},
            )
        return await call_next(request)


def _session_token(request: Request) -> str | None:
    return request.cookies.get(get_settings().auth_cookie_name)


async def get_current_user(
    request: Request,
    verifier: Annotated[CredentialVerifier, Depends(get_credential_verifier)],
) -> SessionUser:
    """Dependency to get the user behind the session cookie.

    Usage:
        @router.get("/me")
        async def get_me(user: SessionUser = Depends(get_current_user)):
            return {"id": user.id}
    """
    token = _session_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        user = await verifier.verify_token(token)
    except TokenExpiredError:
        raise HTTPException(status_code=401, detail="Session expired. Please sign in again.")
    except TokenInvalidError:
        raise HTTPException(status_code=401, detail="Invalid token")
    except AuthenticationError as e:
        logger.warning("auth_failed", error=str(e))
        raise HTTPException(status_code=401, detail="Authentication failed")
    except Exception as e:
        logger.warning("session_verification_error", error=str(e))
        raise HTTPException(status_code=401, detail="Authentication failed")

    request.state.user = user
    logger.debug("user_authenticated", user_id=user.id)
    return user


async def get_optional_user(
    request: Request,
    verifier: Annotated[CredentialVerifier, Depends(get_credential_verifier)],
) -> SessionUser | None:
    """Dependency to get the current user if signed in, None otherwise."""
    token = _session_token(request)
    if not token:
        return None

    try:
        return await verifier.verify_token(token)
    except Exception as e:
        logger.debug("optional_auth_failed", error=str(e))
        return None


# Type aliases for authenticated user
CurrentUser = Annotated[SessionUser, Depends(get_current_user)]
OptionalUser = Annotated[SessionUser | None, Depends(get_optional_user)]
