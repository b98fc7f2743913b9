"""
API key management endpoints.
"""

from typing import List, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from jaydus.core.dependencies import get_current_user
from jaydus.models.records import ApiKey, User
from jaydus.services.api_key_service import ApiKeyService, get_api_key_service

router = APIRouter()


class ApiKeyCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=255)
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")


class ApiKeyResponse(BaseModel):
    """Public view of a key; the hash never leaves the server."""
    id: str
    name: str
    key_preview: str
    is_active: bool
    created_at: datetime
    last_used: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, api_key: ApiKey) -> "ApiKeyResponse":
        return cls(**api_key.model_dump(exclude={"user_id", "key_hash"}))


class ApiKeyCreatedResponse(ApiKeyResponse):
    key: str


@router.post("", response_model=ApiKeyCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    request: ApiKeyCreateRequest,
    current_user: User = Depends(get_current_user),
    service: ApiKeyService = Depends(get_api_key_service),
):
    """Create a key. The secret is shown only in this response."""
    api_key, secret = await service.create_key(current_user.id, request.name, request.expires_at)
    return ApiKeyCreatedResponse(key=secret, **ApiKeyResponse.from_record(api_key).model_dump())


@router.get("", response_model=List[ApiKeyResponse])
async def list_api_keys(
    current_user: User = Depends(get_current_user),
    service: ApiKeyService = Depends(get_api_key_service),
):
    return [ApiKeyResponse.from_record(api_key) for api_key in await service.list_keys(current_user.id)]


@router.delete("/{key_id}", response_model=ApiKeyResponse)
async def deactivate_api_key(
    key_id: str,
    current_user: User = Depends(get_current_user),
    service: ApiKeyService = Depends(get_api_key_service),
):
    return ApiKeyResponse.from_record(await service.deactivate_key(current_user.id, key_id))
