"""Development credential verifier for local testing.

Any non-empty token is accepted and mapped to a fixed user.
NEVER use in production!
"""

from medisage.infrastructure.auth.verifier import CredentialVerifier, SessionUser
from medisage.shared.exceptions import TokenInvalidError
from medisage.shared.logging import get_logger

logger = get_logger(__name__)

DEV_USER_ID = "00000000-0000-0000-0000-000000000001"


class DevCredentialVerifier(CredentialVerifier):
    """Accepts any token and returns the dev user."""

    async def verify_token(self, token: str) -> SessionUser:
        if not token:
            raise TokenInvalidError("Empty session token")

        logger.warning(
            "dev_auth_used",
            message="Using development auth - DO NOT USE IN PRODUCTION",
        )

        return SessionUser(
            id=DEV_USER_ID,
            email="dev@medisage.local",
            role="user",
            name="Dev User",
        )
