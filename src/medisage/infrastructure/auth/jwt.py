"""JWT session token verification."""

from jose import ExpiredSignatureError, JWTError, jwt

from medisage.config import get_settings
from medisage.infrastructure.auth.verifier import CredentialVerifier, SessionUser
from medisage.shared.exceptions import TokenExpiredError, TokenInvalidError
from medisage.shared.logging import get_logger

logger = get_logger(__name__)


class JWTCredentialVerifier(CredentialVerifier):
    """Verifies session cookies signed with the shared auth secret.

    Expected claims: ``id`` (or ``sub``), ``exp``; optional ``email``,
    ``role`` and ``name``.
    """

    def __init__(self, secret: str | None = None, algorithm: str | None = None) -> None:
        settings = get_settings()
        self.secret = secret or settings.auth_jwt_secret
        self.algorithm = algorithm or settings.auth_jwt_algorithm

    async def verify_token(self, token: str) -> SessionUser:
        """Check signature and expiry, then decode the user record."""
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require_exp": True},
            )
        except ExpiredSignatureError:
            raise TokenExpiredError("Session token has expired")
        except JWTError as e:
            logger.warning("jwt_decode_failed", error=str(e))
            raise TokenInvalidError("Session token is invalid")

        user_id = payload.get("id") or payload.get("sub")
        if not user_id:
            raise TokenInvalidError("Session token carries no user id")

        return SessionUser(
            id=str(user_id),
            email=payload.get("email"),
            role=payload.get("role", "user"),
            name=payload.get("name"),
            claims=payload,
        )
