"""
Firestore data store using firebase-admin's async client.
Collections: `users`, `usage` (document id = user id), `chats`, `api_keys`.
"""

from typing import Any, Dict, List, Optional
import json
import firebase_admin
from firebase_admin import credentials, firestore_async
from google.cloud.firestore import Increment
from google.cloud.firestore_v1.base_query import FieldFilter
import structlog

from jaydus.core.config import settings
from jaydus.core.exceptions import ConfigurationError
from jaydus.models.records import User, Chat, ChatMessage, UsageRecord, ApiKey, utcnow
from jaydus.repositories.interfaces import IDataStore, as_utc

logger = structlog.get_logger(__name__)


def initialize_firebase_app() -> firebase_admin.App:
    """Initialize the default Firebase app from the service account JSON (inline or a path)."""
    if firebase_admin._apps:
        return firebase_admin.get_app()

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    service_account = settings.firebase_service_account_json
    if service_account:
        try:
            cred = credentials.Certificate(json.loads(service_account))
        except json.JSONDecodeError:
            cred = credentials.Certificate(service_account)
    elif settings.firebase_project_id:
        cred = credentials.ApplicationDefault()
    else:
        raise ConfigurationError("Missing FIREBASE_SERVICE_ACCOUNT_JSON or FIREBASE_PROJECT_ID")

    logger.info("Initializing Firebase app", project_id=settings.firebase_project_id)
    return firebase_admin.initialize_app(cred, options)


def _plain(record) -> Dict[str, Any]:
    data = record.model_dump(mode="python")
    for name, value in data.items():
        if hasattr(value, "value"):
            data[name] = value.value
    if "messages" in data:
        data["messages"] = [{**m, "role": m["role"].value} for m in data["messages"]]
    return data


def _from_snapshot(model, snapshot):
    if snapshot is None or not snapshot.exists:
        return None
    data = snapshot.to_dict()
    for name, value in data.items():
        if hasattr(value, "tzinfo"):
            data[name] = as_utc(value)
    if model is not UsageRecord:
        data["id"] = snapshot.id
    return model.model_validate(data)


def _update_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for name, value in fields.items():
        if name == "messages":
            value = [_plain(ChatMessage.model_validate(m)) for m in value]
        elif hasattr(value, "value"):
            value = value.value
        values[name] = value
    return values


class FirestoreDataStore(IDataStore):
    """Store backed by Cloud Firestore."""

    backend = "firestore"

    def __init__(self, client=None):
        if client is None:
            client = firestore_async.client(initialize_firebase_app())
        self.db = client

    def _doc(self, collection: str, document_id: str):
        return self.db.collection(collection).document(document_id)

    async def _first(self, model, collection: str, field: str, value: Any):
        query = self.db.collection(collection).where(filter=FieldFilter(field, "==", value)).limit(1)
        async for snapshot in query.stream():
            return _from_snapshot(model, snapshot)
        return None

    async def _all(self, model, collection: str, field: str, value: Any) -> List[Any]:
        query = self.db.collection(collection).where(filter=FieldFilter(field, "==", value))
        return [_from_snapshot(model, snapshot) async for snapshot in query.stream()]

    async def _update(self, model, collection: str, document_id: str, values: Dict[str, Any]):
        ref = self._doc(collection, document_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            return None
        await ref.update(values)
        return _from_snapshot(model, await ref.get())

    # Users
    async def create_user(self, user: User) -> User:
        data = _plain(user)
        data.pop("id")
        await self._doc("users", user.id).set(data)
        await self._doc("usage", user.id).set(_plain(UsageRecord(user_id=user.id)))
        logger.info("User created", user_id=user.id, backend=self.backend)
        return user

    async def get_user(self, user_id: str) -> Optional[User]:
        return _from_snapshot(User, await self._doc("users", user_id).get())

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self._first(User, "users", "email", email)

    async def get_user_by_stripe_customer(self, customer_id: str) -> Optional[User]:
        return await self._first(User, "users", "stripe_customer_id", customer_id)

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        return await self._update(User, "users", user_id, _update_values({**fields, "updated_at": utcnow()}))

    # Chats
    async def create_chat(self, chat: Chat) -> Chat:
        data = _plain(chat)
        data.pop("id")
        await self._doc("chats", chat.id).set(data)
        return chat

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        return _from_snapshot(Chat, await self._doc("chats", chat_id).get())

    async def list_chats(self, user_id: str) -> List[Chat]:
        # Sorted here to avoid requiring a composite index
        chats = await self._all(Chat, "chats", "user_id", user_id)
        return sorted(chats, key=lambda chat: chat.updated_at, reverse=True)

    async def update_chat(self, chat_id: str, fields: Dict[str, Any]) -> Optional[Chat]:
        return await self._update(Chat, "chats", chat_id, _update_values({**fields, "updated_at": utcnow()}))

    async def append_messages(self, chat_id: str, messages: List[ChatMessage]) -> Optional[Chat]:
        chat = await self.get_chat(chat_id)
        if chat is None:
            return None
        return await self.update_chat(chat_id, {"messages": chat.messages + list(messages)})

    async def delete_chat(self, chat_id: str) -> bool:
        ref = self._doc("chats", chat_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            return False
        await ref.delete()
        return True

    # Usage
    async def get_usage(self, user_id: str) -> Optional[UsageRecord]:
        return _from_snapshot(UsageRecord, await self._doc("usage", user_id).get())

    async def increment_usage(self, user_id: str, increments: Dict[str, int]) -> UsageRecord:
        ref = self._doc("usage", user_id)
        values = {name: Increment(amount) for name, amount in increments.items()}
        values.update({"user_id": user_id, "last_updated": utcnow()})
        await ref.set(values, merge=True)
        return _from_snapshot(UsageRecord, await ref.get())

    # API keys
    async def create_api_key(self, api_key: ApiKey) -> ApiKey:
        data = _plain(api_key)
        data.pop("id")
        await self._doc("api_keys", api_key.id).set(data)
        return api_key

    async def get_api_key(self, key_id: str) -> Optional[ApiKey]:
        return _from_snapshot(ApiKey, await self._doc("api_keys", key_id).get())

    async def get_api_key_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        return await self._first(ApiKey, "api_keys", "key_hash", key_hash)

    async def list_api_keys(self, user_id: str) -> List[ApiKey]:
        keys = await self._all(ApiKey, "api_keys", "user_id", user_id)
        return sorted(keys, key=lambda key: key.created_at, reverse=True)

    async def update_api_key(self, key_id: str, fields: Dict[str, Any]) -> Optional[ApiKey]:
        return await self._update(ApiKey, "api_keys", key_id, _update_values(fields))
