"""
Unit tests for usage tracking, credit checks and rate limiting.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from jaydus.cache.cache_manager import CacheManager
from jaydus.cache.redis_client import RedisClient, CacheKeys
from jaydus.core.exceptions import InsufficientCreditsError
from jaydus.models.records import SubscriptionTier, UsageType, User
from jaydus.repositories import MemoryDataStore
from jaydus.services.usage_service import UsageCosts, UsageService, PLAN_CREDIT_LIMITS


@pytest.fixture
def usage_store():
    return MemoryDataStore()


@pytest.fixture
def usage_service(usage_store):
    return UsageService(usage_store)


@pytest.fixture
async def free_user(usage_store) -> User:
    return await usage_store.create_user(User(email="free@jaydus.com"))


class TestUsageCosts:

    def test_costs(self):
        assert UsageCosts.get_cost(UsageType.CHAT) == 1
        assert UsageCosts.get_cost(UsageType.IMAGE) == 10
        assert UsageCosts.get_cost(UsageType.VOICE) == 5
        assert UsageCosts.get_cost(UsageType.STORAGE) == 0

    def test_plan_limits_increase_with_tier(self):
        limits = [PLAN_CREDIT_LIMITS[tier] for tier in SubscriptionTier]
        assert limits == sorted(limits)


class TestTrackUsage:

    async def test_chat_and_images(self, usage_service, free_user):
        await usage_service.track_usage(free_user.id, UsageType.CHAT)
        record = await usage_service.track_usage(free_user.id, UsageType.IMAGE, quantity=2)

        assert record.chat_messages == 1
        assert record.images_generated == 2
        assert record.ai_credits_used == 1 + 20

    async def test_accepts_string_usage_type(self, usage_service, free_user):
        record = await usage_service.track_usage(free_user.id, "voice", quantity=3)

        assert record.voice_minutes == 3
        assert record.ai_credits_used == 15

    async def test_storage_is_free(self, usage_service, free_user):
        record = await usage_service.track_usage(free_user.id, UsageType.STORAGE, quantity=2048)

        assert record.storage_used == 2048
        assert record.ai_credits_used == 0

    async def test_usage_default_for_unknown_user(self, usage_service):
        usage = await usage_service.get_usage("nobody")

        assert usage.user_id == "nobody"
        assert usage.ai_credits_used == 0


class TestCredits:

    async def test_within_limit(self, usage_service, usage_store, free_user):
        await usage_store.increment_usage(free_user.id, {"ai_credits_used": 4990})

        assert await usage_service.check_user_credits(free_user, UsageType.IMAGE)
        assert not await usage_service.check_user_credits(free_user, UsageType.IMAGE, quantity=2)

    async def test_ensure_credits_raises(self, usage_service, usage_store, free_user):
        await usage_store.increment_usage(free_user.id, {"ai_credits_used": 5000})

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await usage_service.ensure_credits(free_user, UsageType.CHAT)
        assert exc_info.value.status_code == 402

    async def test_higher_tier_has_more_room(self, usage_service, usage_store):
        user = await usage_store.create_user(User(email="biz@jaydus.com", subscription=SubscriptionTier.BUSINESS))
        await usage_store.increment_usage(user.id, {"ai_credits_used": 100000})

        await usage_service.ensure_credits(user, UsageType.IMAGE)

    async def test_stats(self, usage_service, free_user):
        await usage_service.track_usage(free_user.id, UsageType.IMAGE)

        stats = await usage_service.get_stats(free_user)

        assert stats["images_generated"] == 1
        assert stats["credit_limit"] == 5000
        assert stats["credits_remaining"] == 4990


class TestRateLimiting:
    """Per-user counters in Redis; missing Redis never blocks requests."""

    async def test_disabled_redis_fails_open(self):
        manager = CacheManager(RedisClient(url=None))

        assert await manager.hit_rate_limit("user-1", "ai", limit=1)
        assert await manager.hit_rate_limit("user-1", "ai", limit=1)

    async def test_limit_enforced(self):
        redis = Mock(spec=RedisClient)
        redis.increment = AsyncMock(side_effect=[1, 2, 3])
        manager = CacheManager(redis)

        results = [await manager.hit_rate_limit("user-1", "chat", limit=2) for _ in range(3)]

        assert results == [True, True, False]
        redis.increment.assert_awaited_with(CacheKeys.rate_limit("user-1", "chat"), ttl=3600)

    async def test_redis_error_fails_open(self):
        client = RedisClient(url="redis://localhost:6379/0")
        client.client = Mock()
        client.client.incr = AsyncMock(side_effect=ConnectionError("down"))

        assert await client.increment("rate_limit:ai:user-1", ttl=60) is None
        assert await CacheManager(client).hit_rate_limit("user-1", "ai", limit=1)

    async def test_first_hit_sets_expiry(self):
        client = RedisClient(url="redis://localhost:6379/0")
        client.client = Mock()
        client.client.incr = AsyncMock(side_effect=[1, 2])
        client.client.expire = AsyncMock()

        assert await client.increment("key", ttl=60) == 1
        assert await client.increment("key", ttl=60) == 2
        client.client.expire.assert_awaited_once_with("key", 60)

    def test_key_format(self):
        assert CacheKeys.rate_limit("user-1", "ai") == "rate_limit:ai:user-1"
