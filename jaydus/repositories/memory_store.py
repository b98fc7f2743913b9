"""
In-memory data store used for local development and mock mode.
"""

from typing import Any, Dict, List, Optional
import structlog

from jaydus.models.records import User, Chat, ChatMessage, UsageRecord, ApiKey, utcnow
from jaydus.repositories.interfaces import IDataStore

logger = structlog.get_logger(__name__)


class MemoryDataStore(IDataStore):
    """Dict-backed store. State lives for the lifetime of the process."""

    backend = "memory"

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.chats: Dict[str, Chat] = {}
        self.usage: Dict[str, UsageRecord] = {}
        self.api_keys: Dict[str, ApiKey] = {}

    # Users
    async def create_user(self, user: User) -> User:
        if any(existing.email == user.email for existing in self.users.values()):
            raise ValueError(f"User with email {user.email} already exists")

        self.users[user.id] = user.model_copy(deep=True)
        self.usage[user.id] = UsageRecord(user_id=user.id)
        logger.info("User created", user_id=user.id, backend=self.backend)
        return user

    async def get_user(self, user_id: str) -> Optional[User]:
        user = self.users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        for user in self.users.values():
            if user.email == email:
                return user.model_copy(deep=True)
        return None

    async def get_user_by_stripe_customer(self, customer_id: str) -> Optional[User]:
        for user in self.users.values():
            if user.stripe_customer_id == customer_id:
                return user.model_copy(deep=True)
        return None

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        user = self.users.get(user_id)
        if user is None:
            return None

        updated = user.model_copy(update={**fields, "updated_at": utcnow()})
        self.users[user_id] = User.model_validate(updated.model_dump())
        return self.users[user_id].model_copy(deep=True)

    # Chats
    async def create_chat(self, chat: Chat) -> Chat:
        self.chats[chat.id] = chat.model_copy(deep=True)
        return chat

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        chat = self.chats.get(chat_id)
        return chat.model_copy(deep=True) if chat else None

    async def list_chats(self, user_id: str) -> List[Chat]:
        chats = [chat.model_copy(deep=True) for chat in self.chats.values() if chat.user_id == user_id]
        return sorted(chats, key=lambda chat: chat.updated_at, reverse=True)

    async def update_chat(self, chat_id: str, fields: Dict[str, Any]) -> Optional[Chat]:
        chat = self.chats.get(chat_id)
        if chat is None:
            return None

        updated = chat.model_copy(update={**fields, "updated_at": utcnow()})
        self.chats[chat_id] = Chat.model_validate(updated.model_dump())
        return self.chats[chat_id].model_copy(deep=True)

    async def append_messages(self, chat_id: str, messages: List[ChatMessage]) -> Optional[Chat]:
        chat = self.chats.get(chat_id)
        if chat is None:
            return None
        return await self.update_chat(chat_id, {"messages": chat.messages + list(messages)})

    async def delete_chat(self, chat_id: str) -> bool:
        return self.chats.pop(chat_id, None) is not None

    # Usage
    async def get_usage(self, user_id: str) -> Optional[UsageRecord]:
        record = self.usage.get(user_id)
        return record.model_copy() if record else None

    async def increment_usage(self, user_id: str, increments: Dict[str, int]) -> UsageRecord:
        record = self.usage.get(user_id) or UsageRecord(user_id=user_id)
        values = {name: getattr(record, name) + amount for name, amount in increments.items()}
        values["last_updated"] = utcnow()
        self.usage[user_id] = record.model_copy(update=values)
        return self.usage[user_id].model_copy()

    # API keys
    async def create_api_key(self, api_key: ApiKey) -> ApiKey:
        self.api_keys[api_key.id] = api_key.model_copy()
        return api_key

    async def get_api_key(self, key_id: str) -> Optional[ApiKey]:
        api_key = self.api_keys.get(key_id)
        return api_key.model_copy() if api_key else None

    async def get_api_key_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        for api_key in self.api_keys.values():
            if api_key.key_hash == key_hash:
                return api_key.model_copy()
        return None

    async def list_api_keys(self, user_id: str) -> List[ApiKey]:
        keys = [key.model_copy() for key in self.api_keys.values() if key.user_id == user_id]
        return sorted(keys, key=lambda key: key.created_at, reverse=True)

    async def update_api_key(self, key_id: str, fields: Dict[str, Any]) -> Optional[ApiKey]:
        api_key = self.api_keys.get(key_id)
        if api_key is None:
            return None
        self.api_keys[key_id] = api_key.model_copy(update=fields)
        return self.api_keys[key_id].model_copy()
