"""
Database models for the Jaydus Platform SQL schema.
"""

from .user import UserRow, UsageRow
from .chat import ChatRow
from .api_key import ApiKeyRow

__all__ = [
    "UserRow",
    "UsageRow",
    "ChatRow",
    "ApiKeyRow",
]
