"""
API key issuance and verification.
"""

from typing import List, Optional, Tuple
from datetime import datetime
from fastapi import Depends
import structlog

from jaydus.core.exceptions import AuthenticationError, NotFoundError
from jaydus.core.security import security_manager
from jaydus.models.records import ApiKey, User, utcnow
from jaydus.repositories import IDataStore, get_data_store

logger = structlog.get_logger(__name__)


class ApiKeyService:
    """Business logic for user API keys."""

    def __init__(self, store: IDataStore):
        self.store = store

    async def create_key(self, user_id: str, name: str, expires_at: Optional[datetime] = None) -> Tuple[ApiKey, str]:
        """Create a key. The secret is returned here and never again."""
        secret, key_hash, preview = security_manager.generate_api_key()
        api_key = ApiKey(
            user_id=user_id,
            name=name,
            key_hash=key_hash,
            key_preview=preview,
            expires_at=expires_at,
        )
        await self.store.create_api_key(api_key)
        logger.info("API key created", user_id=user_id, key_id=api_key.id)
        return api_key, secret

    async def list_keys(self, user_id: str) -> List[ApiKey]:
        return await self.store.list_api_keys(user_id)

    async def deactivate_key(self, user_id: str, key_id: str) -> ApiKey:
        api_key = await self.store.get_api_key(key_id)
        if api_key is None or api_key.user_id != user_id:
            raise NotFoundError("API key not found")

        updated = await self.store.update_api_key(key_id, {"is_active": False})
        logger.info("API key deactivated", user_id=user_id, key_id=key_id)
        return updated

    async def verify_key(self, secret: str) -> User:
        """Resolve the owner of a presented key and record its use."""
        api_key = await self.store.get_api_key_by_hash(security_manager.hash_api_key(secret))
        if api_key is None:
            raise AuthenticationError("Invalid API key")
        if not api_key.is_active:
            raise AuthenticationError("API key is inactive")
        if api_key.is_expired():
            raise AuthenticationError("API key has expired")

        user = await self.store.get_user(api_key.user_id)
        if user is None:
            raise AuthenticationError("User not found")

        await self.store.update_api_key(api_key.id, {"last_used": utcnow()})
        return user


def get_api_key_service(store: IDataStore = Depends(get_data_store)) -> ApiKeyService:
    """Dependency injection for API key service."""
    return ApiKeyService(store)
