"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from medisage import __version__
from medisage.api.middleware.auth import SessionAuthMiddleware, build_credential_verifier
from medisage.api.ratelimit import limiter, rate_limit_exceeded_handler
from medisage.api.router import api_router, health_router
from medisage.config import get_settings
from medisage.infrastructure.database.connection import dispose_engine
from medisage.infrastructure.storage.remote import RemoteFileFetcher
from medisage.observability.metrics import setup_metrics
from medisage.shared.exceptions import (
    AuthenticationError,
    ConfigurationError,
    MediSageError,
    NotFoundError,
    UpstreamExhaustedError,
    ValidationError,
)
from medisage.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def _close(resource: object | None) -> None:
    close = getattr(resource, "close", None)
    if close is not None:
        await close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown events."""
    # Startup
    setup_logging()
    logger.info("medisage_starting", version=__version__)

    # Shared resources (avoid per-request client creation)
    settings = get_settings()
    app.state.credential_verifier = getattr(
        app.state, "credential_verifier", None
    ) or build_credential_verifier(settings)
    app.state.file_fetcher = getattr(app.state, "file_fetcher", None) or RemoteFileFetcher(
        timeout=settings.file_proxy_timeout,
        allowed_hosts=settings.file_proxy_allowed_hosts,
    )

    yield

    # Shutdown
    logger.info("medisage_stopping")
    await _close(getattr(app.state, "credential_verifier", None))
    await _close(getattr(app.state, "file_fetcher", None))

    completion_service = getattr(app.state, "completion_service", None)
    if completion_service is not None:
        await _close(completion_service.client)

    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="MediSage API",
        description="AI health assistant with session-gated pages and file proxy",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Rate limiting
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Session gate; CORS is added after it so it wraps the gate
    app.add_middleware(SessionAuthMiddleware)

    if settings.is_production:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Exception handlers
    register_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(api_router, prefix="/api")

    # Observability
    setup_metrics(app)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        _ = request
        return JSONResponse(
            status_code=400,
            content={
                "error": exc.message,
                "details": exc.details,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        _ = request
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "details": {"errors": jsonable_errors(exc)},
            },
        )

    @app.exception_handler(AuthenticationError)
    async def auth_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        _ = request
        return JSONResponse(
            status_code=401,
            content={"error": "Unauthorized", "message": exc.message},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        _ = request
        return JSONResponse(
            status_code=404,
            content={
                "error": exc.message,
                "details": exc.details,
            },
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        _ = request
        logger.error("configuration_error", error=exc.message)
        return JSONResponse(
            status_code=500,
            content={"error": "AI service configuration error"},
        )

    @app.exception_handler(UpstreamExhaustedError)
    async def upstream_exhausted_handler(
        request: Request, exc: UpstreamExhaustedError
    ) -> JSONResponse:
        _ = request
        return JSONResponse(
            status_code=503,
            content={
                "error": exc.message,
                "details": exc.last_error_message,
            },
        )

    @app.exception_handler(MediSageError)
    async def medisage_error_handler(request: Request, exc: MediSageError) -> JSONResponse:
        _ = request
        logger.error("unhandled_error", error=exc.message, details=exc.details)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": exc.message,
            },
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        _ = request
        logger.exception("unexpected_error", error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    """Validation errors without the raw input/ctx objects."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


# Create app instance
app = create_app()
