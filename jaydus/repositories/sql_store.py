"""
SQL data store (Postgres/Supabase via asyncpg, SQLite via aiosqlite).
"""

from typing import Any, Dict, List, Optional
from sqlalchemy import select, update, delete, text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
import structlog

from jaydus.db.database import close_db, create_engine_for, create_session_factory, init_db
from jaydus.db.models import UserRow, UsageRow, ChatRow, ApiKeyRow
from jaydus.models.records import User, Chat, ChatMessage, UsageRecord, ApiKey, utcnow
from jaydus.repositories.interfaces import IDataStore, as_utc, dump_messages

logger = structlog.get_logger(__name__)


def _user_from_row(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        display_name=row.display_name,
        avatar_url=row.avatar_url,
        role=row.role,
        subscription=row.subscription,
        subscription_status=row.subscription_status,
        stripe_customer_id=row.stripe_customer_id,
        stripe_subscription_id=row.stripe_subscription_id,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
        last_login=as_utc(row.last_login),
    )


def _chat_from_row(row: ChatRow) -> Chat:
    return Chat(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        messages=[ChatMessage.model_validate(message) for message in row.messages or []],
        model=row.model,
        assistant_id=row.assistant_id,
        assistant_name=row.assistant_name,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def _usage_from_row(row: UsageRow) -> UsageRecord:
    return UsageRecord(
        user_id=row.user_id,
        ai_credits_used=row.ai_credits_used,
        chat_messages=row.chat_messages,
        images_generated=row.images_generated,
        voice_minutes=row.voice_minutes,
        storage_used=row.storage_used,
        last_updated=as_utc(row.last_updated),
    )


def _api_key_from_row(row: ApiKeyRow) -> ApiKey:
    return ApiKey(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        key_hash=row.key_hash,
        key_preview=row.key_preview,
        is_active=row.is_active,
        created_at=as_utc(row.created_at),
        last_used=as_utc(row.last_used),
        expires_at=as_utc(row.expires_at),
    )


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for name, value in fields.items():
        if name == "messages":
            value = dump_messages(value)
        elif hasattr(value, "value"):
            value = value.value
        values[name] = value
    return values


class SQLDataStore(IDataStore):
    """Store backed by the `users`, `usage`, `chats` and `api_keys` tables."""

    backend = "postgres"

    def __init__(self, engine: Optional[AsyncEngine] = None, database_url: Optional[str] = None,
                 create_schema: bool = False):
        if engine is None:
            from jaydus.core.config import settings
            engine = create_engine_for(database_url or settings.database_url, echo=settings.debug)
        self.engine = engine
        self.session_factory: async_sessionmaker = create_session_factory(engine)
        self.create_schema = create_schema

    async def connect(self) -> None:
        if self.create_schema:
            await init_db(self.engine)
            logger.info("SQL schema ensured", url=self.engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        await close_db(self.engine)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("SQL ping failed", error=str(e))
            return False

    # Users
    async def create_user(self, user: User) -> User:
        async with self.session_factory() as session:
            async with session.begin():
                session.add(UserRow(**_column_values(user.model_dump())))
                await session.flush()
                session.add(UsageRow(user_id=user.id, last_updated=utcnow()))
        logger.info("User created", user_id=user.id, backend=self.backend)
        return user

    async def _get_user_where(self, clause) -> Optional[User]:
        async with self.session_factory() as session:
            result = await session.execute(select(UserRow).where(clause))
            row = result.scalar_one_or_none()
            return _user_from_row(row) if row else None

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self._get_user_where(UserRow.id == user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self._get_user_where(UserRow.email == email)

    async def get_user_by_stripe_customer(self, customer_id: str) -> Optional[User]:
        return await self._get_user_where(UserRow.stripe_customer_id == customer_id)

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        values = _column_values({**fields, "updated_at": utcnow()})
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(update(UserRow).where(UserRow.id == user_id).values(**values))
            if result.rowcount == 0:
                return None
        return await self.get_user(user_id)

    # Chats
    async def create_chat(self, chat: Chat) -> Chat:
        async with self.session_factory() as session:
            async with session.begin():
                session.add(ChatRow(**_column_values(chat.model_dump())))
        return chat

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        async with self.session_factory() as session:
            row = await session.get(ChatRow, chat_id)
            return _chat_from_row(row) if row else None

    async def list_chats(self, user_id: str) -> List[Chat]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ChatRow).where(ChatRow.user_id == user_id).order_by(ChatRow.updated_at.desc())
            )
            return [_chat_from_row(row) for row in result.scalars().all()]

    async def update_chat(self, chat_id: str, fields: Dict[str, Any]) -> Optional[Chat]:
        values = _column_values({**fields, "updated_at": utcnow()})
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(update(ChatRow).where(ChatRow.id == chat_id).values(**values))
            if result.rowcount == 0:
                return None
        return await self.get_chat(chat_id)

    async def append_messages(self, chat_id: str, messages: List[ChatMessage]) -> Optional[Chat]:
        chat = await self.get_chat(chat_id)
        if chat is None:
            return None
        return await self.update_chat(chat_id, {"messages": chat.messages + list(messages)})

    async def delete_chat(self, chat_id: str) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(delete(ChatRow).where(ChatRow.id == chat_id))
        return result.rowcount > 0

    # Usage
    async def get_usage(self, user_id: str) -> Optional[UsageRecord]:
        async with self.session_factory() as session:
            row = await session.get(UsageRow, user_id)
            return _usage_from_row(row) if row else None

    async def increment_usage(self, user_id: str, increments: Dict[str, int]) -> UsageRecord:
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(UsageRow, user_id, with_for_update=True)
                if row is None:
                    row = UsageRow(user_id=user_id, ai_credits_used=0, chat_messages=0,
                                   images_generated=0, voice_minutes=0, storage_used=0)
                    session.add(row)
                for name, amount in increments.items():
                    setattr(row, name, (getattr(row, name) or 0) + amount)
                row.last_updated = utcnow()
                await session.flush()
                record = _usage_from_row(row)
        return record

    # API keys
    async def create_api_key(self, api_key: ApiKey) -> ApiKey:
        async with self.session_factory() as session:
            async with session.begin():
                session.add(ApiKeyRow(**api_key.model_dump()))
        return api_key

    async def get_api_key(self, key_id: str) -> Optional[ApiKey]:
        async with self.session_factory() as session:
            row = await session.get(ApiKeyRow, key_id)
            return _api_key_from_row(row) if row else None

    async def get_api_key_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        async with self.session_factory() as session:
            result = await session.execute(select(ApiKeyRow).where(ApiKeyRow.key_hash == key_hash))
            row = result.scalar_one_or_none()
            return _api_key_from_row(row) if row else None

    async def list_api_keys(self, user_id: str) -> List[ApiKey]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ApiKeyRow).where(ApiKeyRow.user_id == user_id).order_by(ApiKeyRow.created_at.desc())
            )
            return [_api_key_from_row(row) for row in result.scalars().all()]

    async def update_api_key(self, key_id: str, fields: Dict[str, Any]) -> Optional[ApiKey]:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(ApiKeyRow).where(ApiKeyRow.id == key_id).values(**_column_values(fields))
                )
            if result.rowcount == 0:
                return None
        return await self.get_api_key(key_id)
