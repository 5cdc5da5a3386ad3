"""
Pytest configuration and fixtures for MediSage backend tests.
"""
import os
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt

from medisage.config import Settings, get_settings
from medisage.infrastructure.auth.verifier import CredentialVerifier, SessionUser
from medisage.shared.exceptions import TokenInvalidError

# Set required env vars (medisage.main builds an app at import time)
TEST_JWT_SECRET = "test-jwt-secret-at-least-32-chars-long"
os.environ["AUTH_JWT_SECRET"] = TEST_JWT_SECRET
os.environ["RATE_LIMIT_ENABLED"] = "false"

VALID_TOKEN = "valid-session-token"
TEST_USER = SessionUser(id="user-123", email="patient@example.com", name="Test Patient")


class FakeCredentialVerifier(CredentialVerifier):
    """Accepts exactly one token; everything else is invalid."""

    def __init__(self, user: SessionUser = TEST_USER, token: str = VALID_TOKEN) -> None:
        self.user = user
        self.token = token
        self.calls: list[str] = []

    async def verify_token(self, token: str) -> SessionUser:
        self.calls.append(token)
        if token != self.token:
            raise TokenInvalidError("Session token is invalid")
        return self.user


class FakeCompletionProvider:
    """Replays scripted outcomes: dicts are returned, exceptions raised."""

    def __init__(self, outcomes: list[Any]) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    async def create_chat_completion(
        self, model: str, messages: list[dict[str, Any]]
    ) -> dict[str, Any]:
        self.calls.append({"model": model, "messages": messages})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        return None


def completion_payload(content: str = "Drink plenty of water.") -> dict[str, Any]:
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 5},
    }


def make_token(
    secret: str = TEST_JWT_SECRET,
    expires_in: timedelta = timedelta(hours=1),
    **claims: Any,
) -> str:
    payload: dict[str, Any] = {"id": "user-123", "email": "patient@example.com"}
    payload.update(claims)
    payload["exp"] = datetime.now(UTC) + expires_in
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Iterator[None]:
    """Every test sees settings built from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a provider key, independent of any .env file."""
    return Settings(
        _env_file=None,
        auth_jwt_secret=TEST_JWT_SECRET,
        openrouter_api_key="test-openrouter-key",
        app_env="development",
    )


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def fake_verifier() -> FakeCredentialVerifier:
    return FakeCredentialVerifier()


@pytest.fixture
def chat_history() -> AsyncMock:
    history = AsyncMock()
    history.record_turn = AsyncMock(return_value=True)
    return history


@pytest.fixture
def app(fake_verifier: FakeCredentialVerifier, chat_history: AsyncMock) -> FastAPI:
    """Create test FastAPI application with fake shared clients."""
    from medisage.main import create_app

    app = create_app()
    app.state.credential_verifier = fake_verifier
    app.state.chat_history = chat_history
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create sync test client (lifespan is not run)."""
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def token_factory() -> Callable[..., str]:
    return make_token


@pytest.fixture
def payload_factory() -> Callable[..., dict[str, Any]]:
    return completion_payload


@pytest.fixture
def provider_factory() -> type[FakeCompletionProvider]:
    return FakeCompletionProvider


@pytest.fixture
def session_user() -> SessionUser:
    return TEST_USER


@pytest.fixture
def valid_token() -> str:
    return VALID_TOKEN
