"""
Model routing and upstream request construction for each vendor.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from enum import Enum

from jaydus.core.config import settings
from jaydus.core.exceptions import ConfigurationError, InvalidRequestError, UnsupportedModelError


class Provider(str, Enum):
    """Upstream vendors."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"


OPENAI_PREFIXES = ("gpt-", "o1", "o3", "o4", "dall-e-", "gpt-image-")
ANTHROPIC_PREFIXES = ("claude-",)

IMAGE_MODELS = ("dall-e-3", "dall-e-2", "gpt-image-1")

PROVIDER_LABELS = {
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.OPENROUTER: "OpenRouter",
}

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000


def resolve_provider(model_id: str) -> Provider:
    """Map a model id to the vendor that serves it."""
    if model_id.startswith(OPENAI_PREFIXES):
        return Provider.OPENAI
    if model_id.startswith(ANTHROPIC_PREFIXES):
        return Provider.ANTHROPIC
    if "/" in model_id:
        return Provider.OPENROUTER
    raise UnsupportedModelError(model_id)


def is_image_model(model_id: str) -> bool:
    return model_id in IMAGE_MODELS


def get_api_key(provider: Provider) -> str:
    """Read the vendor key at call time; a missing key is a configuration error."""
    keys = {
        Provider.OPENAI: settings.openai_api_key,
        Provider.ANTHROPIC: settings.anthropic_api_key,
        Provider.OPENROUTER: settings.openrouter_api_key,
    }
    api_key = keys[provider]
    if not api_key:
        raise ConfigurationError(f"{PROVIDER_LABELS[provider]} API key is not configured")
    return api_key


def openrouter_headers() -> Dict[str, str]:
    return {
        "HTTP-Referer": settings.app_url,
        "X-Title": "Jaydus Platform",
    }


@dataclass
class UpstreamRequest:
    """A prepared streaming request to a vendor API."""

    provider: Provider
    url: str
    headers: Dict[str, str]
    payload: Dict[str, Any] = field(default_factory=dict)


def build_stream_request(
    model_id: str,
    prompt: str,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> UpstreamRequest:
    """Build the vendor request for a single-prompt streaming completion."""
    provider = resolve_provider(model_id)
    api_key = get_api_key(provider)
    temperature = temperature if temperature is not None else DEFAULT_TEMPERATURE
    messages = [{"role": "user", "content": prompt}]

    if provider == Provider.ANTHROPIC:
        return UpstreamRequest(
            provider=provider,
            url=f"{settings.anthropic_base_url}/messages",
            headers={
                "Content-Type": "application/json",
                "x-api-key": api_key,
                "anthropic-version": settings.anthropic_version,
            },
            payload={
                "model": model_id,
                "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
                "temperature": temperature,
                "messages": messages,
                "stream": True,
            },
        )

    payload = {
        "model": model_id,
        "messages": messages,
        "temperature": temperature,
        "stream": True,
    }
    if max_tokens:
        payload["max_tokens"] = max_tokens

    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }
    if provider == Provider.OPENROUTER:
        headers.update(openrouter_headers())
        base_url = settings.openrouter_base_url
    else:
        base_url = settings.openai_base_url

    return UpstreamRequest(
        provider=provider,
        url=f"{base_url}/chat/completions",
        headers=headers,
        payload=payload,
    )


def _given(params: Dict[str, Any], name: str, default: Any) -> Any:
    value = params.get(name)
    return default if value is None else value


def build_openai_stream_request(params: Optional[Dict[str, Any]]) -> UpstreamRequest:
    """Build an OpenAI chat streaming request from client-supplied params."""
    api_key = get_api_key(Provider.OPENAI)
    if not params or not params.get("model") or not params.get("messages"):
        raise InvalidRequestError("Invalid request parameters")

    payload = {
        "model": params["model"],
        "messages": params["messages"],
        "temperature": _given(params, "temperature", DEFAULT_TEMPERATURE),
        "max_tokens": _given(params, "max_tokens", DEFAULT_MAX_TOKENS),
        "top_p": _given(params, "top_p", 1),
        "frequency_penalty": _given(params, "frequency_penalty", 0),
        "presence_penalty": _given(params, "presence_penalty", 0),
        "stream": True,
    }
    return UpstreamRequest(
        provider=Provider.OPENAI,
        url=f"{settings.openai_base_url}/chat/completions",
        headers={
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        },
        payload=payload,
    )
