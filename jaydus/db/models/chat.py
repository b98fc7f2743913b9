"""
Chat table. Messages are stored inline as a JSON array.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from jaydus.db.database import Base


class ChatRow(Base):
    """Conversation with its ordered messages."""

    __tablename__ = "chats"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False, default="New Chat")
    messages = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)
    model = Column(String(100), nullable=False, default="openai/gpt-3.5-turbo")
    assistant_id = Column(String(255), nullable=True)
    assistant_name = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<ChatRow(id={self.id}, user_id={self.user_id}, model={self.model})>"
