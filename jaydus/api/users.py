"""
Current user profile and usage statistics.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from jaydus.core.dependencies import get_current_user
from jaydus.core.exceptions import InvalidRequestError
from jaydus.models.records import User, USER_PROFILE_FIELDS
from jaydus.repositories import IDataStore, get_data_store
from jaydus.services.usage_service import UsageService, get_usage_service

router = APIRouter()


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: Optional[str] = Field(default=None, alias="displayName")
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")


@router.get("/me", response_model=User)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=User)
async def update_me(
    request: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    store: IDataStore = Depends(get_data_store),
):
    fields = {name: getattr(request, name) for name in request.model_fields_set if name in USER_PROFILE_FIELDS}
    if not fields:
        raise InvalidRequestError("No fields to update")
    return await store.update_user(current_user.id, fields)


@router.get("/stats")
async def get_stats(
    current_user: User = Depends(get_current_user),
    usage_service: UsageService = Depends(get_usage_service),
) -> Dict[str, Any]:
    """Usage counters for the dashboard; zeros when nothing was used yet."""
    return await usage_service.get_stats(current_user)
