"""Authentication infrastructure."""

from medisage.infrastructure.auth.jwt import JWTCredentialVerifier
from medisage.infrastructure.auth.verifier import CredentialVerifier, SessionUser

__all__ = [
    "CredentialVerifier",
    "JWTCredentialVerifier",
    "SessionUser",
]
