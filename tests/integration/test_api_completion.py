"""Integration tests for the completion proxy endpoint.

The provider is a scripted fake installed on app.state; backoff sleeps are
recorded instead of awaited.
"""

import pytest

from medisage.config import get_settings
from medisage.domain.chat.completion import CompletionService
from medisage.shared.exceptions import UpstreamStatusError

URL = "/api/ai-completion"
BODY = {"messages": [{"role": "user", "content": "What is a normal resting heart rate?"}]}


@pytest.fixture
def signed_in(client, valid_token):
    client.cookies.set("auth-token", valid_token)
    return client


@pytest.fixture
def install_provider(app, test_settings, fake_sleep, provider_factory):
    def _install(outcomes):
        provider = provider_factory(outcomes)
        app.state.completion_service = CompletionService(provider, test_settings, sleep=fake_sleep)
        return provider

    return _install


class TestCompletionEndpoint:
    """Test POST /api/ai-completion."""

    def test_requires_session(self, client):
        response = client.post(URL, json=BODY)

        assert response.status_code == 307
        assert response.headers["location"] == (
            "/login?callbackUrl=http%3A%2F%2Ftestserver%2Fapi%2Fai-completion"
        )

    def test_success_returns_choices(self, signed_in, install_provider, payload_factory):
        install_provider([payload_factory("60 to 100 beats per minute.")])

        response = signed_in.post(URL, json=BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["choices"][0]["message"]["content"] == "60 to 100 beats per minute."
        assert data["model"] == "google/gemini-2.0-flash-exp:free"
        assert data["usage"]["prompt_tokens"] == 12

    def test_requested_model_is_forwarded(self, signed_in, install_provider, payload_factory):
        provider = install_provider([payload_factory()])

        response = signed_in.post(URL, json={**BODY, "model": "openai/gpt-4o-mini"})

        assert response.status_code == 200
        assert provider.calls[0]["model"] == "openai/gpt-4o-mini"

    def test_exhaustion_returns_503_with_last_error(self, signed_in, install_provider, sleeps):
        install_provider(
            [UpstreamStatusError(f"OpenRouter API error: 500 - try {i}", status_code=500) for i in range(5)]
        )

        response = signed_in.post(URL, json=BODY)

        assert response.status_code == 503
        assert response.json() == {
            "error": "AI service temporarily unavailable. Please try again in a moment.",
            "details": "OpenRouter API error: 500 - try 4",
        }
        assert sleeps == [1.0, 2.0, 4.0, 5.0]

    def test_provider_auth_failure_fails_fast(self, signed_in, install_provider, sleeps):
        provider = install_provider(
            [UpstreamStatusError("OpenRouter API error: 401 - No auth credentials", status_code=401)]
        )

        response = signed_in.post(URL, json=BODY)

        assert response.status_code == 503
        assert response.json()["details"] == "OpenRouter API error: 401 - No auth credentials"
        assert len(provider.calls) == 1
        assert sleeps == []

    @pytest.mark.parametrize("body", [{}, {"messages": "hello"}, {"messages": [{"content": "x"}]}])
    def test_malformed_body_is_400(self, signed_in, install_provider, body):
        install_provider([])

        response = signed_in.post(URL, json=body)

        assert response.status_code == 400

    def test_missing_api_key_is_500(self, signed_in, monkeypatch):
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        get_settings.cache_clear()

        response = signed_in.post(URL, json=BODY)

        assert response.status_code == 500
        assert response.json() == {"error": "AI service configuration error"}
