"""
Chat completion and chat history endpoints.
"""

from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
import structlog

from jaydus.core.dependencies import get_current_user, rate_limit_chat
from jaydus.core.exceptions import InvalidRequestError, NotFoundError
from jaydus.models.records import (
    Chat,
    ChatMessage,
    MessageRole,
    UsageType,
    User,
    CHAT_MUTABLE_FIELDS,
    CHAT_REQUIRED_FIELDS,
    DEFAULT_CHAT_MODEL,
)
from jaydus.repositories import IDataStore, get_data_store
from jaydus.services.ai.ai_service import ai_service_manager
from jaydus.services.usage_service import UsageService, get_usage_service

logger = structlog.get_logger(__name__)

router = APIRouter()


class ChatMessageIn(BaseModel):
    role: MessageRole
    content: str


class ChatCompletionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessageIn] = Field(default_factory=list)
    model: str = DEFAULT_CHAT_MODEL
    chat_id: Optional[str] = Field(default=None, alias="chatId")


class ChatCreateRequest(BaseModel):
    title: str = "New Chat"
    model: str = DEFAULT_CHAT_MODEL
    messages: List[ChatMessage] = Field(default_factory=list)
    assistant_id: Optional[str] = None
    assistant_name: Optional[str] = None


class ChatUpdateRequest(BaseModel):
    title: Optional[str] = None
    model: Optional[str] = None
    messages: Optional[List[ChatMessage]] = None
    assistant_id: Optional[str] = None
    assistant_name: Optional[str] = None


async def _get_owned_chat(store: IDataStore, chat_id: str, user: User) -> Chat:
    chat = await store.get_chat(chat_id)
    if chat is None or chat.user_id != user.id:
        raise NotFoundError("Chat not found")
    return chat


@router.post("/chat")
async def chat_completion(
    request: ChatCompletionRequest,
    current_user: User = Depends(rate_limit_chat),
    store: IDataStore = Depends(get_data_store),
    usage_service: UsageService = Depends(get_usage_service),
) -> Dict[str, str]:
    """
    Send the conversation to OpenRouter and return the assistant message.
    When `chatId` names one of the caller's chats, the exchange is saved to it.
    """
    if not request.messages:
        raise InvalidRequestError("Messages are required")

    chat = await _get_owned_chat(store, request.chat_id, current_user) if request.chat_id else None
    await usage_service.ensure_credits(current_user, UsageType.CHAT)

    reply = await ai_service_manager.chat_with_openrouter(
        messages=[message.model_dump(mode="json") for message in request.messages],
        model=request.model,
    )

    if chat is not None:
        last_user_message = next(
            (message for message in reversed(request.messages) if message.role == MessageRole.USER),
            None,
        )
        new_messages = []
        if last_user_message is not None:
            new_messages.append(ChatMessage(role=MessageRole.USER, content=last_user_message.content))
        new_messages.append(ChatMessage(role=MessageRole.ASSISTANT, content=reply["content"]))
        await store.append_messages(chat.id, new_messages)
        logger.info("Chat updated", chat_id=chat.id, user_id=current_user.id)

    await usage_service.track_usage(current_user.id, UsageType.CHAT)
    return reply


@router.get("/chats", response_model=List[Chat])
async def list_chats(
    current_user: User = Depends(get_current_user),
    store: IDataStore = Depends(get_data_store),
):
    return await store.list_chats(current_user.id)


@router.post("/chats", response_model=Chat, status_code=status.HTTP_201_CREATED)
async def create_chat(
    request: ChatCreateRequest,
    current_user: User = Depends(get_current_user),
    store: IDataStore = Depends(get_data_store),
):
    chat = Chat(user_id=current_user.id, **request.model_dump())
    await store.create_chat(chat)
    logger.info("Chat created", chat_id=chat.id, user_id=current_user.id)
    return chat


@router.get("/chats/{chat_id}", response_model=Chat)
async def get_chat(
    chat_id: str,
    current_user: User = Depends(get_current_user),
    store: IDataStore = Depends(get_data_store),
):
    return await _get_owned_chat(store, chat_id, current_user)


@router.patch("/chats/{chat_id}", response_model=Chat)
async def update_chat(
    chat_id: str,
    request: ChatUpdateRequest,
    current_user: User = Depends(get_current_user),
    store: IDataStore = Depends(get_data_store),
):
    await _get_owned_chat(store, chat_id, current_user)
    fields: Dict[str, Any] = {
        name: getattr(request, name)
        for name in request.model_fields_set
        if name in CHAT_MUTABLE_FIELDS
    }
    if not fields:
        raise InvalidRequestError("No fields to update")
    for name in CHAT_REQUIRED_FIELDS:
        if name in fields and fields[name] is None:
            raise InvalidRequestError(f"Field '{name}' cannot be null")
    return await store.update_chat(chat_id, fields)


@router.delete("/chats/{chat_id}")
async def delete_chat(
    chat_id: str,
    current_user: User = Depends(get_current_user),
    store: IDataStore = Depends(get_data_store),
) -> Dict[str, bool]:
    await _get_owned_chat(store, chat_id, current_user)
    await store.delete_chat(chat_id)
    logger.info("Chat deleted", chat_id=chat_id, user_id=current_user.id)
    return {"success": True}
