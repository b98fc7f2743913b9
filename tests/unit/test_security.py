"""
Unit tests for JWT handling, API key hashing and API key verification.
"""

import pytest
from datetime import timedelta

from jaydus.core.exceptions import AuthenticationError, NotFoundError
from jaydus.core.security import SecurityManager, create_access_token, verify_token
from jaydus.models.records import ApiKey, User, utcnow
from jaydus.repositories import MemoryDataStore
from jaydus.services.api_key_service import ApiKeyService


class TestTokens:

    def test_round_trip(self):
        token = create_access_token({"sub": "user-1"})

        payload = verify_token(token)

        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"
        assert payload["exp"] > payload["iat"]

    def test_expired_token(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-10))

        with pytest.raises(AuthenticationError, match="Could not validate credentials"):
            verify_token(token)

    def test_wrong_type(self):
        manager = SecurityManager()
        token = manager.create_access_token({"sub": "user-1"})

        with pytest.raises(AuthenticationError, match="Invalid token type"):
            manager.verify_token(token, token_type="refresh")

    def test_missing_subject(self):
        token = create_access_token({"email": "x@jaydus.com"})

        with pytest.raises(AuthenticationError, match="Token missing user identifier"):
            SecurityManager().extract_user_id(token)

    def test_tampered_token(self):
        token = create_access_token({"sub": "user-1"})

        with pytest.raises(AuthenticationError):
            verify_token(token[:-2] + ("aa" if not token.endswith("aa") else "bb"))


class TestApiKeyGeneration:

    def test_generated_key_shape(self):
        secret, key_hash, preview = SecurityManager().generate_api_key()

        assert secret.startswith("jd_")
        assert len(secret) == 3 + 32
        assert all(char in "0123456789abcdef" for char in secret[3:])
        assert len(key_hash) == 64
        assert key_hash == SecurityManager.hash_api_key(secret)
        assert preview == secret[:8] + "..."

    def test_keys_are_unique(self):
        manager = SecurityManager()
        assert manager.generate_api_key()[0] != manager.generate_api_key()[0]


class TestApiKeyService:

    @pytest.fixture
    def key_store(self):
        return MemoryDataStore()

    @pytest.fixture
    def key_service(self, key_store):
        return ApiKeyService(key_store)

    @pytest.fixture
    async def owner(self, key_store) -> User:
        return await key_store.create_user(User(email="owner@jaydus.com"))

    async def test_secret_not_stored(self, key_service, key_store, owner):
        api_key, secret = await key_service.create_key(owner.id, "deploy")

        stored = await key_store.get_api_key(api_key.id)
        assert secret not in stored.model_dump_json()
        assert stored.key_hash == SecurityManager.hash_api_key(secret)

    async def test_verify_updates_last_used(self, key_service, key_store, owner):
        api_key, secret = await key_service.create_key(owner.id, "deploy")

        user = await key_service.verify_key(secret)

        assert user.id == owner.id
        assert (await key_store.get_api_key(api_key.id)).last_used is not None

    async def test_expired(self, key_service, owner):
        _, secret = await key_service.create_key(owner.id, "old", expires_at=utcnow() - timedelta(minutes=1))

        with pytest.raises(AuthenticationError, match="API key has expired"):
            await key_service.verify_key(secret)

    async def test_deleted_owner(self, key_service, key_store):
        await key_store.create_api_key(ApiKey(
            user_id="ghost", name="orphan",
            key_hash=SecurityManager.hash_api_key("jd_orphan"), key_preview="jd_orph...",
        ))

        with pytest.raises(AuthenticationError, match="User not found"):
            await key_service.verify_key("jd_orphan")

    async def test_deactivate_unknown(self, key_service, owner):
        with pytest.raises(NotFoundError):
            await key_service.deactivate_key(owner.id, "missing")

    def test_naive_expiry_treated_as_utc(self):
        naive_past = (utcnow() - timedelta(hours=1)).replace(tzinfo=None)
        api_key = ApiKey(user_id="u", name="n", key_hash="h", key_preview="p", expires_at=naive_past)

        assert api_key.is_expired()
