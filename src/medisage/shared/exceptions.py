"""Custom exception hierarchy for MediSage."""

from typing import Any


class MediSageError(Exception):
    """Base exception for all MediSage errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ----- Authentication Errors -----


class AuthenticationError(MediSageError):
    """Authentication failed."""

    pass


class TokenExpiredError(AuthenticationError):
    """Session token has expired."""

    pass


class TokenInvalidError(AuthenticationError):
    """Session token is invalid."""

    pass


# ----- Resource Errors -----


class NotFoundError(MediSageError):
    """Requested resource was not found."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            message=f"{resource} not found",
            details={"resource": resource, "identifier": identifier},
        )


# ----- Validation Errors -----


class ValidationError(MediSageError):
    """Input validation failed."""

    pass


# ----- Configuration Errors -----


class ConfigurationError(MediSageError):
    """A required setting (e.g. a provider API key) is missing."""

    pass


# ----- External Service Errors -----


class ExternalServiceError(MediSageError):
    """Error from an external service."""

    pass


class CompletionAttemptError(ExternalServiceError):
    """A single completion attempt failed.

    status_code is the upstream HTTP status, or None for transport failures
    and malformed responses.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class UpstreamStatusError(CompletionAttemptError):
    """Completion provider answered with a non-success status."""

    pass


class UpstreamTransportError(CompletionAttemptError):
    """Completion provider could not be reached."""

    pass


class MalformedCompletionError(CompletionAttemptError):
    """Completion provider answered without a usable message."""

    pass


class FallbackModelSelected(CompletionAttemptError):
    """The primary model rejected the request; the next attempt uses the fallback."""

    def __init__(self, cause: CompletionAttemptError, fallback_model: str) -> None:
        super().__init__(
            cause.message,
            status_code=cause.status_code,
            details={"fallback_model": fallback_model},
        )
        self.fallback_model = fallback_model


class UpstreamExhaustedError(ExternalServiceError):
    """Every completion attempt failed."""

    def __init__(self, last_error: Exception | None, attempts: int) -> None:
        super().__init__(
            message="AI service temporarily unavailable. Please try again in a moment.",
            details={"attempts": attempts},
        )
        self.last_error = last_error
        self.attempts = attempts

    @property
    def last_error_message(self) -> str:
        if self.last_error is None:
            return "Unknown error"
        return getattr(self.last_error, "message", None) or str(self.last_error)


class FileFetchError(ExternalServiceError):
    """Remote file could not be fetched."""

    pass


# ----- Persistence Errors -----


class PersistenceError(MediSageError):
    """Writing to the chat store failed."""

    pass
