"""
FastAPI dependencies for authentication and rate limiting.
"""

from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import structlog

from jaydus.cache.cache_manager import cache_manager
from jaydus.core.exceptions import AuthenticationError
from jaydus.core.security import security_manager
from jaydus.models.records import User
from jaydus.repositories import IDataStore, get_data_store
from jaydus.services.api_key_service import ApiKeyService

logger = structlog.get_logger(__name__)

# Security scheme; credentials may also arrive as X-API-Key
security = HTTPBearer(auto_error=False)


async def _resolve_user(
    credentials: Optional[HTTPAuthorizationCredentials],
    api_key: Optional[str],
    store: IDataStore,
) -> Optional[User]:
    if credentials is not None:
        user_id = security_manager.extract_user_id(credentials.credentials)
        user = await store.get_user(user_id)
        if user is None:
            raise AuthenticationError("User not found")
        return user

    if api_key:
        return await ApiKeyService(store).verify_key(api_key)

    return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    store: IDataStore = Depends(get_data_store),
) -> User:
    """
    Get the authenticated user from a Bearer JWT or an X-API-Key header.
    """
    user = await _resolve_user(credentials, x_api_key, store)
    if user is None:
        raise AuthenticationError("Not authenticated")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    store: IDataStore = Depends(get_data_store),
) -> Optional[User]:
    """
    Get current user if credentials were sent, otherwise None.
    Invalid credentials are still rejected.
    """
    return await _resolve_user(credentials, x_api_key, store)


class RateLimitDependency:
    """
    Rate limiting dependency factory. Resolves the caller once and returns it.
    Anonymous callers pass unlimited, or get 401 when the endpoint requires a user.
    """

    def __init__(self, endpoint: str, requests_per_window: Optional[int] = None, require_user: bool = False):
        self.endpoint = endpoint
        self.requests_per_window = requests_per_window
        self.require_user = require_user

    async def __call__(self, current_user: Optional[User] = Depends(get_optional_user)) -> Optional[User]:
        if current_user is None:
            if self.require_user:
                raise AuthenticationError("Not authenticated")
            return None

        if not await cache_manager.hit_rate_limit(current_user.id, self.endpoint, self.requests_per_window):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded. Please try again later."
            )
        return current_user


# Common rate limit instances
rate_limit_ai = RateLimitDependency("ai")
rate_limit_chat = RateLimitDependency("chat", require_user=True)
