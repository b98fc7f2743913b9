"""
Streaming completion endpoints. Vendor SSE streams are re-emitted as
`data: {"content": ...}` events followed by a single `data: [DONE]`.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from pydantic import BaseModel, ConfigDict, Field
import structlog

from jaydus.core.dependencies import rate_limit_ai
from jaydus.core.exceptions import InvalidRequestError
from jaydus.models.records import UsageType, User
from jaydus.services.ai.ai_service import ai_service_manager
from jaydus.services.ai.providers import build_openai_stream_request, build_stream_request
from jaydus.services.usage_service import UsageService, get_usage_service

logger = structlog.get_logger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class StreamOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")


class AIStreamRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    model_id: Optional[str] = Field(default=None, alias="modelId")
    prompt: Optional[str] = None
    options: StreamOptions = Field(default_factory=StreamOptions)


class OpenAIStreamRequest(BaseModel):
    params: Optional[Dict[str, Any]] = None


async def _stream_response(upstream, current_user: Optional[User], usage_service: UsageService) -> StreamingResponse:
    if current_user is not None:
        await usage_service.ensure_credits(current_user, UsageType.CHAT)

    events = await ai_service_manager.open_stream(upstream)

    try:
        if current_user is not None:
            await usage_service.track_usage(current_user.id, UsageType.CHAT)
    except BaseException:
        await events.aclose()
        raise

    # Releases the upstream connection even when the body is never iterated
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(events.aclose),
    )


@router.post("/ai-stream")
async def ai_stream(
    request: AIStreamRequest,
    current_user: Optional[User] = Depends(rate_limit_ai),
    usage_service: UsageService = Depends(get_usage_service),
):
    """
    Stream a single-prompt completion from OpenAI, Anthropic or OpenRouter,
    selected by model id prefix.
    """
    if not request.model_id or not request.prompt:
        raise InvalidRequestError("Model ID and prompt are required")

    upstream = build_stream_request(
        request.model_id,
        request.prompt,
        temperature=request.options.temperature,
        max_tokens=request.options.max_tokens,
    )
    logger.info("AI stream requested", model=request.model_id, provider=upstream.provider.value)
    return await _stream_response(upstream, current_user, usage_service)


@router.post("/openai-stream")
async def openai_stream(
    request: OpenAIStreamRequest,
    current_user: Optional[User] = Depends(rate_limit_ai),
    usage_service: UsageService = Depends(get_usage_service),
):
    """Stream an OpenAI chat completion from client-supplied parameters."""
    upstream = build_openai_stream_request(request.params)
    logger.info("OpenAI stream requested", model=upstream.payload["model"])
    return await _stream_response(upstream, current_user, usage_service)
