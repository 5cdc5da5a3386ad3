"""Credential verification interface.

The authorization gate and the route dependencies only depend on
CredentialVerifier, so tests can substitute a deterministic fake for real
signature checks.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SessionUser:
    """Identity decoded from a session credential."""

    id: str
    email: str | None = None
    role: str = "user"
    name: str | None = None
    claims: dict[str, Any] = field(default_factory=dict, compare=False)


class CredentialVerifier(ABC):
    """Validates session tokens.

    Implementations:
    - JWTCredentialVerifier: HS256-signed session cookies
    - DevCredentialVerifier: accepts any token (local development only)
    """

    @abstractmethod
    async def verify_token(self, token: str) -> SessionUser:
        """Verify a session token and return the user it belongs to.

        Args:
            token: Raw token value from the session cookie

        Returns:
            SessionUser decoded from the token

        Raises:
            TokenExpiredError: If the token has expired
            TokenInvalidError: If the signature or structure is invalid
            AuthenticationError: For other auth failures
        """
        pass

    async def close(self) -> None:
        """Release resources held by the verifier."""
        return None
