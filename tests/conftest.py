"""
Test configuration and fixtures.
API tests run against the in-memory data store; vendor APIs are replaced
by an httpx.MockTransport installed on the AI service manager.
"""

import json
import pytest
import httpx
from datetime import timedelta
from typing import Callable, List
from fastapi.testclient import TestClient

from jaydus.core.config import settings
from jaydus.core.security import create_access_token
from jaydus.main import app
from jaydus.models.records import User, SubscriptionTier
from jaydus.repositories import MemoryDataStore, set_data_store
from jaydus.services.ai.ai_service import ai_service_manager


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Vendor keys present, Stripe in mock mode, Redis off."""
    monkeypatch.setattr(settings, "openai_api_key", "sk-test-openai")
    monkeypatch.setattr(settings, "anthropic_api_key", "sk-ant-test")
    monkeypatch.setattr(settings, "openrouter_api_key", "sk-or-test")
    monkeypatch.setattr(settings, "stripe_secret_key", None)
    monkeypatch.setattr(settings, "stripe_webhook_secret", None)
    monkeypatch.setattr(settings, "mock_mode", False)
    monkeypatch.setattr(settings, "redis_url", None)
    return settings


@pytest.fixture
def store():
    """Fresh in-memory store installed as the app's data store."""
    memory_store = MemoryDataStore()
    set_data_store(memory_store)
    yield memory_store
    set_data_store(None)


@pytest.fixture
def client(store) -> TestClient:
    return TestClient(app)


@pytest.fixture
async def sample_user(store) -> User:
    """A free-tier user."""
    return await store.create_user(User(email="test@jaydus.com", display_name="Test User"))


@pytest.fixture
async def other_user(store) -> User:
    return await store.create_user(User(email="other@jaydus.com"))


@pytest.fixture
async def pro_user(store) -> User:
    return await store.create_user(
        User(email="pro@jaydus.com", subscription=SubscriptionTier.PRO, stripe_customer_id="cus_pro_123")
    )


def auth_headers_for(user: User) -> dict:
    token = create_access_token({"sub": user.id}, expires_delta=timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(sample_user) -> dict:
    return auth_headers_for(sample_user)


class UpstreamRecorder:
    """Mock vendor API: records requests and answers with a canned response."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def mock_upstream(monkeypatch):
    """
    Install a MockTransport on every upstream client.

    Usage: recorder = mock_upstream(lambda request: httpx.Response(200, ...))
    """
    def install(responder: Callable[[httpx.Request], httpx.Response]) -> UpstreamRecorder:
        recorder = UpstreamRecorder(responder)
        monkeypatch.setattr(ai_service_manager, "transport", httpx.MockTransport(recorder))
        return recorder

    return install


def sse_body(*events: str) -> bytes:
    """Join raw `data:` payloads into an upstream SSE body."""
    return "".join(f"data: {event}\n\n" for event in events).encode("utf-8")


def openai_delta(content: str) -> str:
    return json.dumps({"choices": [{"index": 0, "delta": {"content": content}}]})


def anthropic_delta(text: str) -> str:
    return json.dumps({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}})


def openai_completion(content: str, model: str = "gpt-4o") -> dict:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": model,
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
    }
