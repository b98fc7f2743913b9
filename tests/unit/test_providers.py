"""
Unit tests for model routing and upstream request construction.
"""

import pytest

from jaydus.core.config import settings
from jaydus.core.exceptions import ConfigurationError, InvalidRequestError, UnsupportedModelError
from jaydus.services.ai.providers import (
    Provider,
    build_openai_stream_request,
    build_stream_request,
    is_image_model,
    resolve_provider,
)


class TestResolveProvider:

    @pytest.mark.parametrize("model_id", [
        "gpt-4o", "gpt-3.5-turbo", "o1-mini", "o3-mini", "o4-mini", "dall-e-3", "gpt-image-1",
    ])
    def test_openai_models(self, model_id):
        assert resolve_provider(model_id) == Provider.OPENAI

    @pytest.mark.parametrize("model_id", ["claude-3-opus-20240229", "claude-3-5-sonnet-latest"])
    def test_anthropic_models(self, model_id):
        assert resolve_provider(model_id) == Provider.ANTHROPIC

    @pytest.mark.parametrize("model_id", ["openai/gpt-4-turbo-preview", "anthropic/claude-3-opus", "google/gemini-pro"])
    def test_openrouter_models(self, model_id):
        assert resolve_provider(model_id) == Provider.OPENROUTER

    @pytest.mark.parametrize("model_id", ["llama-2", "gemini-pro", ""])
    def test_unknown_models(self, model_id):
        with pytest.raises(UnsupportedModelError) as exc_info:
            resolve_provider(model_id)
        assert exc_info.value.status_code == 400

    def test_image_models(self):
        assert is_image_model("dall-e-3")
        assert is_image_model("gpt-image-1")
        assert not is_image_model("gpt-4o")


class TestBuildStreamRequest:

    def test_openai_omits_max_tokens_when_unset(self):
        upstream = build_stream_request("gpt-4o", "Hi")

        assert upstream.provider == Provider.OPENAI
        assert "max_tokens" not in upstream.payload
        assert upstream.payload["temperature"] == 0.7
        assert upstream.payload["stream"] is True

    def test_zero_temperature_kept(self):
        upstream = build_stream_request("gpt-4o", "Hi", temperature=0)

        assert upstream.payload["temperature"] == 0

    def test_anthropic_request(self):
        upstream = build_stream_request("claude-3-haiku-20240307", "Hi", max_tokens=256)

        assert upstream.url == "https://api.anthropic.com/v1/messages"
        assert upstream.headers["x-api-key"] == "sk-ant-test"
        assert "Authorization" not in upstream.headers
        assert upstream.payload["max_tokens"] == 256

    def test_openrouter_attribution_headers(self, monkeypatch):
        monkeypatch.setattr(settings, "app_url", "https://platform.jaydus.com")

        upstream = build_stream_request("google/gemini-pro", "Hi")

        assert upstream.headers["HTTP-Referer"] == "https://platform.jaydus.com"
        assert upstream.headers["X-Title"] == "Jaydus Platform"

    @pytest.mark.parametrize("setting, model_id, label", [
        ("openai_api_key", "gpt-4o", "OpenAI"),
        ("anthropic_api_key", "claude-3-opus-20240229", "Anthropic"),
        ("openrouter_api_key", "google/gemini-pro", "OpenRouter"),
    ])
    def test_missing_key(self, monkeypatch, setting, model_id, label):
        monkeypatch.setattr(settings, setting, None)

        with pytest.raises(ConfigurationError, match=f"{label} API key is not configured"):
            build_stream_request(model_id, "Hi")


class TestBuildOpenAIStreamRequest:

    def test_client_values_kept(self):
        upstream = build_openai_stream_request({
            "model": "gpt-4o",
            "messages": [{"role": "user", "content": "Hi"}],
            "temperature": 0,
            "max_tokens": 10,
            "top_p": 0.5,
        })

        assert upstream.payload["temperature"] == 0
        assert upstream.payload["max_tokens"] == 10
        assert upstream.payload["top_p"] == 0.5
        assert upstream.payload["presence_penalty"] == 0

    @pytest.mark.parametrize("params", [None, {}, {"model": "gpt-4o"}, {"messages": [{"role": "user"}]}])
    def test_invalid_params(self, params):
        with pytest.raises(InvalidRequestError, match="Invalid request parameters"):
            build_openai_stream_request(params)
