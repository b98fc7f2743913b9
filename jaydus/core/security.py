"""
Security utilities for authentication.
Implements JWT bearer tokens and API key generation/hashing.
"""

from typing import Optional, Dict, Any, Tuple
from datetime import datetime, timedelta, timezone
import hashlib
import secrets
from jose import JWTError, jwt
import structlog

from jaydus.core.config import settings
from jaydus.core.exceptions import AuthenticationError

logger = structlog.get_logger(__name__)

API_KEY_PREFIX = "jd_"


class SecurityManager:
    """Centralized security management for authentication."""

    @property
    def secret_key(self) -> str:
        return settings.secret_key

    @property
    def algorithm(self) -> str:
        return settings.algorithm

    def create_access_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create JWT access token."""
        to_encode = data.copy()
        now = datetime.now(timezone.utc)

        if expires_delta:
            expire = now + expires_delta
        else:
            expire = now + timedelta(minutes=settings.access_token_expire_minutes)

        to_encode.update({
            "exp": expire,
            "iat": now,
            "type": "access"
        })

        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """Verify and decode JWT token. Expiration is enforced by jose."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning("JWT verification failed", error=str(e))
            raise AuthenticationError("Could not validate credentials")

        if payload.get("type") != token_type:
            raise AuthenticationError(f"Invalid token type. Expected {token_type}")

        return payload

    def extract_user_id(self, token: str) -> str:
        """Extract user ID from JWT token."""
        payload = self.verify_token(token)
        user_id = payload.get("sub")

        if user_id is None:
            raise AuthenticationError("Token missing user identifier")

        return user_id

    def generate_api_key(self) -> Tuple[str, str, str]:
        """Generate a new API key. Returns (secret, hash, preview)."""
        secret = f"{API_KEY_PREFIX}{secrets.token_hex(16)}"
        return secret, self.hash_api_key(secret), self.preview_api_key(secret)

    @staticmethod
    def hash_api_key(key: str) -> str:
        """Hash an API key for storage."""
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    @staticmethod
    def preview_api_key(key: str) -> str:
        return key[:8] + "..."


# Global security manager instance
security_manager = SecurityManager()


# Convenience functions
def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create access token."""
    return security_manager.create_access_token(data, expires_delta)


def verify_token(token: str, token_type: str = "access") -> Dict[str, Any]:
    """Verify token."""
    return security_manager.verify_token(token, token_type)
