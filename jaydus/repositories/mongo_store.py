"""
MongoDB data store using motor. Collections mirror the SQL tables:
`users`, `usage`, `chats` and `api_keys`, keyed by `_id`.
"""

from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument, DESCENDING
import structlog

from jaydus.models.records import User, Chat, ChatMessage, UsageRecord, ApiKey, utcnow
from jaydus.repositories.interfaces import IDataStore, as_utc

logger = structlog.get_logger(__name__)

USAGE_COUNTERS = ("ai_credits_used", "chat_messages", "images_generated", "voice_minutes", "storage_used")


def _to_document(record) -> Dict[str, Any]:
    document = record.model_dump(mode="python")
    for name, value in document.items():
        if hasattr(value, "value"):
            document[name] = value.value
    if "messages" in document:
        document["messages"] = [
            {**message, "role": message["role"].value if hasattr(message["role"], "value") else message["role"]}
            for message in document["messages"]
        ]
    if "id" in document:
        document["_id"] = document.pop("id")
    return document


def _from_document(model, document: Optional[Dict[str, Any]]):
    if document is None:
        return None
    data = dict(document)
    if "_id" in data:
        identifier = data.pop("_id")
        if model is not UsageRecord:
            data["id"] = identifier
    for name, value in data.items():
        if hasattr(value, "tzinfo"):
            data[name] = as_utc(value)
    if "messages" in data:
        data["messages"] = [
            {**message, "timestamp": as_utc(message.get("timestamp"))} for message in data["messages"]
        ]
    return model.model_validate(data)


def _update_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for name, value in fields.items():
        if name == "messages":
            value = [ChatMessage.model_validate(m).model_dump() for m in value]
            value = [{**m, "role": m["role"].value} for m in value]
        elif hasattr(value, "value"):
            value = value.value
        values[name] = value
    return values


class MongoDataStore(IDataStore):
    """Store backed by a MongoDB database."""

    backend = "mongodb"

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None, uri: Optional[str] = None,
                 database_name: Optional[str] = None):
        self.client: Optional[AsyncIOMotorClient] = None
        if database is None:
            from jaydus.core.config import settings
            self.client = AsyncIOMotorClient(uri or settings.mongodb_uri)
            database = self.client[database_name or settings.mongodb_database]
        self.db = database

    async def connect(self) -> None:
        await self.db["users"].create_index("email", unique=True)
        await self.db["chats"].create_index([("user_id", 1), ("updated_at", DESCENDING)])
        await self.db["api_keys"].create_index("key_hash", unique=True)
        logger.info("MongoDB indexes ensured")

    async def close(self) -> None:
        if self.client is not None:
            self.client.close()

    async def ping(self) -> bool:
        try:
            await self.db.command("ping")
            return True
        except Exception as e:
            logger.error("MongoDB ping failed", error=str(e))
            return False

    # Users
    async def create_user(self, user: User) -> User:
        await self.db["users"].insert_one(_to_document(user))
        usage = _to_document(UsageRecord(user_id=user.id))
        usage["_id"] = usage["user_id"]
        await self.db["usage"].insert_one(usage)
        logger.info("User created", user_id=user.id, backend=self.backend)
        return user

    async def get_user(self, user_id: str) -> Optional[User]:
        return _from_document(User, await self.db["users"].find_one({"_id": user_id}))

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return _from_document(User, await self.db["users"].find_one({"email": email}))

    async def get_user_by_stripe_customer(self, customer_id: str) -> Optional[User]:
        return _from_document(User, await self.db["users"].find_one({"stripe_customer_id": customer_id}))

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        document = await self.db["users"].find_one_and_update(
            {"_id": user_id},
            {"$set": _update_values({**fields, "updated_at": utcnow()})},
            return_document=ReturnDocument.AFTER,
        )
        return _from_document(User, document)

    # Chats
    async def create_chat(self, chat: Chat) -> Chat:
        await self.db["chats"].insert_one(_to_document(chat))
        return chat

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        return _from_document(Chat, await self.db["chats"].find_one({"_id": chat_id}))

    async def list_chats(self, user_id: str) -> List[Chat]:
        cursor = self.db["chats"].find({"user_id": user_id}).sort("updated_at", DESCENDING)
        return [_from_document(Chat, document) async for document in cursor]

    async def update_chat(self, chat_id: str, fields: Dict[str, Any]) -> Optional[Chat]:
        document = await self.db["chats"].find_one_and_update(
            {"_id": chat_id},
            {"$set": _update_values({**fields, "updated_at": utcnow()})},
            return_document=ReturnDocument.AFTER,
        )
        return _from_document(Chat, document)

    async def append_messages(self, chat_id: str, messages: List[ChatMessage]) -> Optional[Chat]:
        document = await self.db["chats"].find_one_and_update(
            {"_id": chat_id},
            {
                "$push": {"messages": {"$each": _update_values({"messages": messages})["messages"]}},
                "$set": {"updated_at": utcnow()},
            },
            return_document=ReturnDocument.AFTER,
        )
        return _from_document(Chat, document)

    async def delete_chat(self, chat_id: str) -> bool:
        result = await self.db["chats"].delete_one({"_id": chat_id})
        return result.deleted_count > 0

    # Usage
    async def get_usage(self, user_id: str) -> Optional[UsageRecord]:
        return _from_document(UsageRecord, await self.db["usage"].find_one({"_id": user_id}))

    async def increment_usage(self, user_id: str, increments: Dict[str, int]) -> UsageRecord:
        document = await self.db["usage"].find_one_and_update(
            {"_id": user_id},
            {
                "$inc": increments,
                "$set": {"last_updated": utcnow()},
                "$setOnInsert": {
                    "user_id": user_id,
                    **{name: 0 for name in USAGE_COUNTERS if name not in increments},
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return _from_document(UsageRecord, document)

    # API keys
    async def create_api_key(self, api_key: ApiKey) -> ApiKey:
        await self.db["api_keys"].insert_one(_to_document(api_key))
        return api_key

    async def get_api_key(self, key_id: str) -> Optional[ApiKey]:
        return _from_document(ApiKey, await self.db["api_keys"].find_one({"_id": key_id}))

    async def get_api_key_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        return _from_document(ApiKey, await self.db["api_keys"].find_one({"key_hash": key_hash}))

    async def list_api_keys(self, user_id: str) -> List[ApiKey]:
        cursor = self.db["api_keys"].find({"user_id": user_id}).sort("created_at", DESCENDING)
        return [_from_document(ApiKey, document) async for document in cursor]

    async def update_api_key(self, key_id: str, fields: Dict[str, Any]) -> Optional[ApiKey]:
        document = await self.db["api_keys"].find_one_and_update(
            {"_id": key_id},
            {"$set": _update_values(fields)},
            return_document=ReturnDocument.AFTER,
        )
        return _from_document(ApiKey, document)
