"""
Usage tracking and credit checks.
Each billable operation costs AI credits; plans cap credits per account.
"""

from typing import Any, Dict
from fastapi import Depends
import structlog

from jaydus.core.exceptions import InsufficientCreditsError
from jaydus.models.records import SubscriptionTier, UsageRecord, UsageType, User, USAGE_COUNTER_FIELDS
from jaydus.repositories import IDataStore, get_data_store

logger = structlog.get_logger(__name__)


class UsageCosts:
    """Credit cost per unit of each usage type."""
    COSTS = {
        UsageType.CHAT: 1,
        UsageType.IMAGE: 10,
        UsageType.VOICE: 5,
        UsageType.STORAGE: 0,
    }

    @classmethod
    def get_cost(cls, usage_type: UsageType) -> int:
        return cls.COSTS.get(usage_type, 1)


PLAN_CREDIT_LIMITS = {
    SubscriptionTier.FREE: 5000,
    SubscriptionTier.BASIC: 20000,
    SubscriptionTier.PRO: 50000,
    SubscriptionTier.BUSINESS: 150000,
    SubscriptionTier.ENTERPRISE: 500000,
}


class UsageService:
    """Business logic for usage counters."""

    def __init__(self, store: IDataStore):
        self.store = store

    async def track_usage(self, user_id: str, usage_type: UsageType, quantity: int = 1) -> UsageRecord:
        """Add `quantity` units of a usage type and charge its credit cost."""
        usage_type = UsageType(usage_type)
        increments = {
            "ai_credits_used": UsageCosts.get_cost(usage_type) * quantity,
            USAGE_COUNTER_FIELDS[usage_type]: quantity,
        }
        record = await self.store.increment_usage(user_id, increments)
        logger.info(
            "Usage tracked",
            user_id=user_id,
            usage_type=usage_type.value,
            quantity=quantity,
            credits_used=record.ai_credits_used,
        )
        return record

    async def get_usage(self, user_id: str) -> UsageRecord:
        """Usage counters, zeroed when the user has no record yet."""
        return await self.store.get_usage(user_id) or UsageRecord(user_id=user_id)

    async def check_user_credits(self, user: User, usage_type: UsageType, quantity: int = 1) -> bool:
        usage = await self.get_usage(user.id)
        required = UsageCosts.get_cost(UsageType(usage_type)) * quantity
        remaining = PLAN_CREDIT_LIMITS[SubscriptionTier(user.subscription)] - usage.ai_credits_used
        return remaining >= required

    async def ensure_credits(self, user: User, usage_type: UsageType, quantity: int = 1) -> None:
        """Raise InsufficientCreditsError when the plan cannot cover the operation."""
        if not await self.check_user_credits(user, usage_type, quantity):
            logger.warning("Insufficient credits", user_id=user.id, usage_type=UsageType(usage_type).value)
            raise InsufficientCreditsError("Insufficient AI credits for this operation")

    async def get_stats(self, user: User) -> Dict[str, Any]:
        """Usage counters plus plan allowance for the dashboard."""
        usage = await self.get_usage(user.id)
        limit = PLAN_CREDIT_LIMITS[SubscriptionTier(user.subscription)]
        return {
            "ai_credits_used": usage.ai_credits_used,
            "chat_messages": usage.chat_messages,
            "images_generated": usage.images_generated,
            "voice_minutes": usage.voice_minutes,
            "storage_used": usage.storage_used,
            "last_updated": usage.last_updated,
            "credit_limit": limit,
            "credits_remaining": max(limit - usage.ai_credits_used, 0),
        }


def get_usage_service(store: IDataStore = Depends(get_data_store)) -> UsageService:
    """Dependency injection for usage service."""
    return UsageService(store)
