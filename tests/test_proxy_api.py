"""
Tests for the non-streaming proxies: /api/openai-proxy and /api/ai-proxy.
Vendor SDK clients run against httpx.MockTransport.
"""

import httpx
import pytest

from jaydus.core.config import settings
from jaydus.services.ai.ai_service import STABLE_DIFFUSION_PLACEHOLDER
from conftest import openai_completion


def anthropic_message(text: str) -> dict:
    return {
        "id": "msg_test",
        "type": "message",
        "role": "assistant",
        "model": "claude-3-haiku-20240307",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 3, "output_tokens": 1},
    }


class TestOpenAIProxy:
    """Raw parameter passthrough to OpenAI."""

    def test_missing_params(self, client):
        response = client.post("/api/openai-proxy", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing params in request body"}

    def test_missing_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "openai_api_key", None)

        response = client.post("/api/openai-proxy", json={"params": {"model": "gpt-4o"}})

        assert response.status_code == 500
        assert response.json() == {"error": "OpenAI API key is not configured"}

    def test_chat_completion(self, client, mock_upstream):
        recorder = mock_upstream(lambda request: httpx.Response(200, json=openai_completion("Hi there")))

        response = client.post("/api/openai-proxy", json={"params": {
            "model": "gpt-4o",
            "messages": [{"role": "user", "content": "Hello"}],
        }})

        assert response.status_code == 200
        assert response.json()["choices"][0]["message"]["content"] == "Hi there"
        assert recorder.requests[0].url.path.endswith("/chat/completions")
        assert recorder.last_json["model"] == "gpt-4o"

    def test_image_generation(self, client, mock_upstream):
        recorder = mock_upstream(lambda request: httpx.Response(
            200, json={"created": 1700000000, "data": [{"url": "https://images.example/cat.png"}]}
        ))

        response = client.post("/api/openai-proxy", json={"params": {"model": "dall-e-3", "prompt": "a cat"}})

        assert response.status_code == 200
        assert response.json()["data"][0]["url"] == "https://images.example/cat.png"
        assert recorder.requests[0].url.path.endswith("/images/generations")
        assert recorder.last_json["size"] == "1024x1024"

    def test_vendor_error_status(self, client, mock_upstream):
        mock_upstream(lambda request: httpx.Response(
            400, json={"error": {"message": "Invalid model", "type": "invalid_request_error"}}
        ))

        response = client.post("/api/openai-proxy", json={"params": {"model": "gpt-nope", "messages": []}})

        assert response.status_code == 400

    async def test_image_usage_charged(self, client, store, sample_user, auth_headers, mock_upstream):
        mock_upstream(lambda request: httpx.Response(200, json={"created": 1, "data": [{"url": "https://x"}]}))

        client.post("/api/openai-proxy", json={"params": {"model": "dall-e-3", "prompt": "a cat"}},
                    headers=auth_headers)

        usage = await store.get_usage(sample_user.id)
        assert usage.images_generated == 1
        assert usage.ai_credits_used == 10


class TestAIProxy:
    """Provider-agnostic text and image generation."""

    def test_required_fields(self, client):
        response = client.post("/api/ai-proxy", json={"modelId": "gpt-4o"})

        assert response.status_code == 400
        assert response.json() == {"error": "Model ID and prompt are required"}

    def test_unsupported_type(self, client):
        response = client.post("/api/ai-proxy", json={"modelId": "gpt-4o", "prompt": "Hi", "type": "video"})

        assert response.status_code == 400
        assert response.json() == {"error": "Unsupported content type: video"}

    def test_unsupported_text_model(self, client):
        response = client.post("/api/ai-proxy", json={"modelId": "mystery", "prompt": "Hi"})

        assert response.status_code == 400
        assert response.json() == {"error": "Unsupported text model: mystery"}

    def test_openai_text(self, client, mock_upstream):
        recorder = mock_upstream(lambda request: httpx.Response(200, json=openai_completion("42")))

        response = client.post("/api/ai-proxy", json={
            "modelId": "gpt-4o",
            "prompt": "Meaning of life?",
            "options": {"temperature": 0.1, "maxTokens": 20},
        })

        assert response.status_code == 200
        assert response.json()["choices"][0]["message"]["content"] == "42"
        assert recorder.last_json["temperature"] == 0.1
        assert recorder.last_json["max_tokens"] == 20

    @pytest.mark.parametrize("model_id, response_body", [
        ("gpt-4o", openai_completion("cold")),
        ("claude-3-haiku-20240307", anthropic_message("cold")),
    ])
    def test_zero_temperature_kept(self, client, mock_upstream, model_id, response_body):
        recorder = mock_upstream(lambda request: httpx.Response(200, json=response_body))

        response = client.post("/api/ai-proxy", json={
            "modelId": model_id, "prompt": "Hi", "options": {"temperature": 0},
        })

        assert response.status_code == 200
        assert recorder.last_json["temperature"] == 0

    def test_anthropic_text(self, client, mock_upstream):
        recorder = mock_upstream(lambda request: httpx.Response(200, json=anthropic_message("Salut")))

        response = client.post("/api/ai-proxy", json={"modelId": "claude-3-haiku-20240307", "prompt": "Hi"})

        assert response.status_code == 200
        assert response.json()["content"][0]["text"] == "Salut"
        assert recorder.requests[0].url.path.endswith("/messages")
        assert recorder.last_json["max_tokens"] == 1000

    def test_openrouter_text(self, client, mock_upstream):
        recorder = mock_upstream(lambda request: httpx.Response(
            200, json=openai_completion("hello", model="mistralai/mixtral-8x7b-instruct")
        ))

        response = client.post("/api/ai-proxy", json={"modelId": "mistralai/mixtral-8x7b-instruct", "prompt": "Hi"})

        assert response.status_code == 200
        assert recorder.requests[0].url.host == "openrouter.ai"
        assert recorder.requests[0].headers["X-Title"] == "Jaydus Platform"

    def test_stable_diffusion_placeholder(self, client, mock_upstream):
        recorder = mock_upstream(lambda request: httpx.Response(500))

        response = client.post("/api/ai-proxy", json={
            "modelId": "stable-diffusion-xl", "prompt": "a lake", "type": "image",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["images"] == [STABLE_DIFFUSION_PLACEHOLDER]
        assert body["id"].startswith("img_")
        assert recorder.requests == []

    def test_unsupported_image_model(self, client):
        response = client.post("/api/ai-proxy", json={"modelId": "midjourney", "prompt": "x", "type": "image"})

        assert response.status_code == 400
        assert response.json() == {"error": "Unsupported image model: midjourney"}

    def test_dalle_image(self, client, mock_upstream):
        recorder = mock_upstream(lambda request: httpx.Response(
            200, json={"created": 1, "data": [{"url": "https://images.example/lake.png"}]}
        ))

        response = client.post("/api/ai-proxy", json={
            "modelId": "dall-e-3", "prompt": "a lake", "type": "image", "options": {"size": "1792x1024"},
        })

        assert response.status_code == 200
        assert recorder.last_json["size"] == "1792x1024"
        assert recorder.last_json["n"] == 1
