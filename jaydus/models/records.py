"""
Backend-neutral records shared by every data store.
Each store converts its native rows/documents to and from these models.
"""

from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field
from datetime import datetime, timezone
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class UserRole(str, Enum):
    """Platform roles."""
    USER = "user"
    ADMIN = "admin"


class SubscriptionTier(str, Enum):
    """Subscription tiers ordered from cheapest to most expensive."""
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    BUSINESS = "business"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    """Stripe subscription statuses tracked on the user."""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class UsageType(str, Enum):
    """Billable operations."""
    CHAT = "chat"
    IMAGE = "image"
    VOICE = "voice"
    STORAGE = "storage"


DEFAULT_CHAT_MODEL = "openai/gpt-3.5-turbo"


class User(BaseModel):
    """Platform user with subscription state."""

    id: str = Field(default_factory=new_id)
    email: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: UserRole = UserRole.USER
    subscription: SubscriptionTier = SubscriptionTier.FREE
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_login: Optional[datetime] = None


class ChatMessage(BaseModel):
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class Chat(BaseModel):
    """Conversation owned by a single user."""

    id: str = Field(default_factory=new_id)
    user_id: str
    title: str = "New Chat"
    messages: List[ChatMessage] = Field(default_factory=list)
    model: str = DEFAULT_CHAT_MODEL
    assistant_id: Optional[str] = None
    assistant_name: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UsageRecord(BaseModel):
    """Per-user usage counters. Only ever incremented."""

    user_id: str
    ai_credits_used: int = 0
    chat_messages: int = 0
    images_generated: int = 0
    voice_minutes: int = 0
    storage_used: int = 0
    last_updated: datetime = Field(default_factory=utcnow)


class ApiKey(BaseModel):
    """Stored API key. The secret itself is never persisted."""

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str
    key_hash: str
    key_preview: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    last_used: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or utcnow()
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now


# Usage counter field incremented for each usage type
USAGE_COUNTER_FIELDS = {
    UsageType.CHAT: "chat_messages",
    UsageType.IMAGE: "images_generated",
    UsageType.VOICE: "voice_minutes",
    UsageType.STORAGE: "storage_used",
}

# Fields a user may change on their own profile
USER_PROFILE_FIELDS = ("display_name", "avatar_url")

# Fields a chat owner may change
CHAT_MUTABLE_FIELDS = ("title", "messages", "model", "assistant_id", "assistant_name")
CHAT_REQUIRED_FIELDS = ("title", "messages", "model")
