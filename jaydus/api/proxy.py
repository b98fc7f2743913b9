"""
Non-streaming AI proxy endpoints.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
import structlog

from jaydus.core.dependencies import rate_limit_ai
from jaydus.core.exceptions import InvalidRequestError
from jaydus.models.records import UsageType, User
from jaydus.services.ai.ai_service import ai_service_manager
from jaydus.services.ai.providers import get_api_key, is_image_model, Provider
from jaydus.services.usage_service import UsageService, get_usage_service

logger = structlog.get_logger(__name__)

router = APIRouter()


class OpenAIProxyRequest(BaseModel):
    params: Optional[Dict[str, Any]] = None


class AIProxyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    model_id: Optional[str] = Field(default=None, alias="modelId")
    prompt: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)
    type: str = "text"


@router.post("/openai-proxy")
async def openai_proxy(
    request: OpenAIProxyRequest,
    current_user: Optional[User] = Depends(rate_limit_ai),
    usage_service: UsageService = Depends(get_usage_service),
) -> Dict[str, Any]:
    """Pass parameters straight to OpenAI chat completions or image generation."""
    get_api_key(Provider.OPENAI)
    if not request.params:
        raise InvalidRequestError("Missing params in request body")

    usage_type = UsageType.IMAGE if is_image_model(request.params.get("model") or "") else UsageType.CHAT
    if current_user is not None:
        await usage_service.ensure_credits(current_user, usage_type)

    result = await ai_service_manager.openai_proxy(request.params)

    if current_user is not None:
        await usage_service.track_usage(current_user.id, usage_type)
    return result


@router.post("/ai-proxy")
async def ai_proxy(
    request: AIProxyRequest,
    current_user: Optional[User] = Depends(rate_limit_ai),
    usage_service: UsageService = Depends(get_usage_service),
) -> Dict[str, Any]:
    """Provider-agnostic text or image generation."""
    if not request.model_id or not request.prompt:
        raise InvalidRequestError("Model ID and prompt are required")

    if request.type == "text":
        usage_type = UsageType.CHAT
    elif request.type == "image":
        usage_type = UsageType.IMAGE
    else:
        raise InvalidRequestError(f"Unsupported content type: {request.type}")

    if current_user is not None:
        await usage_service.ensure_credits(current_user, usage_type)

    logger.info("AI proxy request", model=request.model_id, type=request.type)
    if usage_type == UsageType.CHAT:
        result = await ai_service_manager.complete_text(request.model_id, request.prompt, request.options)
    else:
        result = await ai_service_manager.generate_image(request.model_id, request.prompt, request.options)

    if current_user is not None:
        await usage_service.track_usage(current_user.id, usage_type)
    return result
