"""
AI service integrations for OpenAI, Anthropic and OpenRouter.
Streams are proxied over raw httpx; one-shot completions use the vendor SDKs.
"""

import openai
import anthropic
import httpx
from typing import Dict, Any, List, Optional, AsyncIterator
import structlog
import uuid

from jaydus.core.config import settings
from jaydus.core.exceptions import InvalidRequestError, UnsupportedModelError, UpstreamError
from jaydus.services.ai.providers import (
    Provider,
    UpstreamRequest,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    get_api_key,
    is_image_model,
    openrouter_headers,
    resolve_provider,
)
from jaydus.services.ai.sse import reformat_stream

logger = structlog.get_logger(__name__)

STABLE_DIFFUSION_PLACEHOLDER = "https://placehold.co/1024x1024/png?text=Stable+Diffusion+Mock+Image"


class UpstreamStream:
    """
    Normalized SSE events of one open vendor response.

    Iterating to the end releases the connection; aclose() releases it
    early and is safe to call more than once.
    """

    def __init__(self, provider: Provider, response: httpx.Response, client: httpx.AsyncClient):
        self.provider = provider
        self.response = response
        self.client = client
        self.closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self._events()

    async def _events(self) -> AsyncIterator[str]:
        try:
            async for event in reformat_stream(self.provider, self.response.aiter_bytes()):
                yield event
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.response.aclose()
        finally:
            await self.client.aclose()


class AIServiceManager:
    """Centralized AI service manager for multiple providers."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Injected into every upstream httpx client (tests use httpx.MockTransport)
        self.transport = transport

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=settings.upstream_timeout, transport=self.transport)

    def get_openai_client(self) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(
            api_key=get_api_key(Provider.OPENAI),
            base_url=settings.openai_base_url,
            http_client=self._http_client(),
        )

    def get_anthropic_client(self) -> anthropic.AsyncAnthropic:
        return anthropic.AsyncAnthropic(
            api_key=get_api_key(Provider.ANTHROPIC),
            http_client=self._http_client(),
        )

    def get_openrouter_client(self) -> openai.AsyncOpenAI:
        """OpenRouter speaks the OpenAI protocol."""
        return openai.AsyncOpenAI(
            api_key=get_api_key(Provider.OPENROUTER),
            base_url=settings.openrouter_base_url,
            default_headers=openrouter_headers(),
            http_client=self._http_client(),
        )

    async def open_stream(self, upstream: UpstreamRequest) -> UpstreamStream:
        """
        Open a vendor stream and return its normalized SSE events.

        Upstream error statuses are raised as UpstreamError before any byte is
        streamed to the client. The caller owns the returned stream and must
        aclose() it if it is never iterated to the end.
        """
        client = self._http_client()
        request = client.build_request("POST", upstream.url, headers=upstream.headers, json=upstream.payload)

        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            logger.error("Upstream request failed", provider=upstream.provider.value, error=str(e))
            raise UpstreamError(f"Failed to reach {upstream.provider.value}", status_code=502,
                                provider=upstream.provider.value)

        if not response.is_success:
            error_text = (await response.aread()).decode("utf-8", errors="replace")
            await response.aclose()
            await client.aclose()
            logger.error(
                "Upstream API error",
                provider=upstream.provider.value,
                status_code=response.status_code,
                body=error_text[:500],
            )
            raise UpstreamError(f"API error: {response.status_code}", status_code=response.status_code,
                                provider=upstream.provider.value)

        logger.info("Upstream stream opened", provider=upstream.provider.value, model=upstream.payload.get("model"))
        return UpstreamStream(upstream.provider, response, client)

    async def openai_proxy(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Forward params to OpenAI: image generation for image models, chat completion otherwise."""
        client = self.get_openai_client()
        model = params.get("model")

        try:
            if model and is_image_model(model):
                response = await client.images.generate(
                    model=model,
                    prompt=params.get("prompt"),
                    n=params.get("n") or 1,
                    size=params.get("size") or "1024x1024",
                )
            else:
                response = await client.chat.completions.create(**params)
        except openai.APIStatusError as e:
            logger.error("OpenAI API error", status_code=e.status_code, error=str(e))
            raise UpstreamError(str(e), status_code=e.status_code, provider=Provider.OPENAI.value)
        except openai.APIError as e:
            logger.error("OpenAI API error", error=str(e))
            raise UpstreamError(str(e), provider=Provider.OPENAI.value)
        finally:
            await client.close()

        return response.model_dump()

    async def complete_text(self, model_id: str, prompt: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """One-shot text completion routed by model id."""
        options = options or {}
        temperature = options.get("temperature")
        if temperature is None:
            temperature = DEFAULT_TEMPERATURE
        try:
            provider = resolve_provider(model_id)
        except UnsupportedModelError:
            raise UnsupportedModelError(model_id, f"Unsupported text model: {model_id}")
        messages = [{"role": "user", "content": prompt}]

        if provider == Provider.ANTHROPIC:
            client = self.get_anthropic_client()
            try:
                response = await client.messages.create(
                    model=model_id,
                    max_tokens=options.get("maxTokens") or DEFAULT_MAX_TOKENS,
                    temperature=temperature,
                    messages=messages,
                )
            except anthropic.APIStatusError as e:
                logger.error("Anthropic API error", status_code=e.status_code, error=str(e))
                raise UpstreamError(str(e), status_code=e.status_code, provider=provider.value)
            except anthropic.APIError as e:
                logger.error("Anthropic API error", error=str(e))
                raise UpstreamError(str(e), provider=provider.value)
            finally:
                await client.close()
            return response.model_dump()

        client = self.get_openrouter_client() if provider == Provider.OPENROUTER else self.get_openai_client()
        kwargs = {"model": model_id, "messages": messages, "temperature": temperature}
        if options.get("maxTokens"):
            kwargs["max_tokens"] = options["maxTokens"]
        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            logger.error("Completion API error", provider=provider.value, status_code=e.status_code, error=str(e))
            raise UpstreamError(str(e), status_code=e.status_code, provider=provider.value)
        except openai.APIError as e:
            logger.error("Completion API error", provider=provider.value, error=str(e))
            raise UpstreamError(str(e), provider=provider.value)
        finally:
            await client.close()
        return response.model_dump()

    async def generate_image(self, model_id: str, prompt: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Image generation: DALL-E 3 via OpenAI, Stable Diffusion XL as a placeholder."""
        options = options or {}

        if model_id == "stable-diffusion-xl":
            return {"id": f"img_{uuid.uuid4().hex[:12]}", "images": [STABLE_DIFFUSION_PLACEHOLDER], "model": model_id}

        if model_id != "dall-e-3":
            raise InvalidRequestError(f"Unsupported image model: {model_id}")

        return await self.openai_proxy({
            "model": model_id,
            "prompt": prompt,
            "n": options.get("count") or 1,
            "size": options.get("size") or "1024x1024",
        })

    async def chat_with_openrouter(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> Dict[str, str]:
        """
        Chat completion through OpenRouter.

        Returns:
            The assistant message as {"role", "content"}
        """
        client = self.get_openrouter_client()
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIStatusError as e:
            logger.error("OpenRouter API error", status_code=e.status_code, error=str(e))
            raise UpstreamError(str(e), status_code=e.status_code, provider=Provider.OPENROUTER.value)
        except openai.APIError as e:
            logger.error("OpenRouter API error", error=str(e))
            raise UpstreamError(str(e), provider=Provider.OPENROUTER.value)
        finally:
            await client.close()

        message = response.choices[0].message
        logger.info("OpenRouter chat completed", model=model, finish_reason=response.choices[0].finish_reason)
        return {"role": message.role or "assistant", "content": message.content or ""}


# Global AI service manager instance
ai_service_manager = AIServiceManager()
