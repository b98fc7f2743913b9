"""
Data store contract shared by the memory, SQL, MongoDB and Firestore backends.

Every backend stores the same four record kinds (users, chats, usage,
api_keys) and converts them to and from `jaydus.models.records`.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from jaydus.models.records import User, Chat, ChatMessage, UsageRecord, ApiKey


class IDataStore(ABC):
    """CRUD operations on users, chats, usage and API keys."""

    backend: str = "abstract"

    async def connect(self) -> None:
        """Open connections or create schema. Optional."""

    async def close(self) -> None:
        """Release connections. Optional."""

    async def ping(self) -> bool:
        return True

    # Users
    @abstractmethod
    async def create_user(self, user: User) -> User:
        """Insert a user and its zeroed usage record."""
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_user_by_stripe_customer(self, customer_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        """Apply a partial update and bump `updated_at`. None if missing."""
        pass

    # Chats
    @abstractmethod
    async def create_chat(self, chat: Chat) -> Chat:
        pass

    @abstractmethod
    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        pass

    @abstractmethod
    async def list_chats(self, user_id: str) -> List[Chat]:
        """A user's chats, most recently updated first."""
        pass

    @abstractmethod
    async def update_chat(self, chat_id: str, fields: Dict[str, Any]) -> Optional[Chat]:
        pass

    @abstractmethod
    async def append_messages(self, chat_id: str, messages: List[ChatMessage]) -> Optional[Chat]:
        pass

    @abstractmethod
    async def delete_chat(self, chat_id: str) -> bool:
        pass

    # Usage
    @abstractmethod
    async def get_usage(self, user_id: str) -> Optional[UsageRecord]:
        pass

    @abstractmethod
    async def increment_usage(self, user_id: str, increments: Dict[str, int]) -> UsageRecord:
        """Add to usage counters, creating the record if needed."""
        pass

    # API keys
    @abstractmethod
    async def create_api_key(self, api_key: ApiKey) -> ApiKey:
        pass

    @abstractmethod
    async def get_api_key(self, key_id: str) -> Optional[ApiKey]:
        pass

    @abstractmethod
    async def get_api_key_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        pass

    @abstractmethod
    async def list_api_keys(self, user_id: str) -> List[ApiKey]:
        pass

    @abstractmethod
    async def update_api_key(self, key_id: str, fields: Dict[str, Any]) -> Optional[ApiKey]:
        pass


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Backends that drop tzinfo (SQLite, BSON) hand back naive UTC datetimes."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def dump_messages(messages: List[Any]) -> List[Dict[str, Any]]:
    """Serialize chat messages for JSON columns."""
    dumped = []
    for message in messages:
        if not isinstance(message, ChatMessage):
            message = ChatMessage.model_validate(message)
        dumped.append(message.model_dump(mode="json"))
    return dumped
