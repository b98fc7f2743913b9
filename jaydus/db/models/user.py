"""
User and usage tables.
"""

from sqlalchemy import Column, Integer, BigInteger, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from jaydus.db.database import Base


class UserRow(Base):
    """Platform user with Stripe subscription state."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    role = Column(String(20), nullable=False, default="user")

    # Subscription
    subscription = Column(String(20), nullable=False, default="free")
    subscription_status = Column(String(20), nullable=False, default="active")
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True)

    # Metadata
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<UserRow(id={self.id}, email={self.email}, subscription={self.subscription})>"


class UsageRow(Base):
    """Usage counters, one row per user."""

    __tablename__ = "usage"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    ai_credits_used = Column(Integer, nullable=False, default=0)
    chat_messages = Column(Integer, nullable=False, default=0)
    images_generated = Column(Integer, nullable=False, default=0)
    voice_minutes = Column(Integer, nullable=False, default=0)
    storage_used = Column(BigInteger, nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<UsageRow(user_id={self.user_id}, credits={self.ai_credits_used})>"
