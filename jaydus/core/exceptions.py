"""
Domain exceptions surfaced to clients as `{"error": message}` JSON bodies.
"""

from typing import Optional


class JaydusError(Exception):
    """Base exception carrying the HTTP status it maps to."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.error_code = error_code


class ConfigurationError(JaydusError):
    """A required setting (API key, secret) is missing."""

    status_code = 500


class InvalidRequestError(JaydusError):
    """The request body is missing required fields."""

    status_code = 400


class UnsupportedModelError(InvalidRequestError):
    """No provider handles the requested model id."""

    def __init__(self, model_id: str, message: Optional[str] = None):
        super().__init__(message or f"Streaming not supported for model {model_id}", error_code="UNSUPPORTED_MODEL")
        self.model_id = model_id


class AuthenticationError(JaydusError):
    """Credentials are missing or invalid."""

    status_code = 401


class NotFoundError(JaydusError):
    """The record does not exist or does not belong to the caller."""

    status_code = 404


class InsufficientCreditsError(JaydusError):
    """The user's plan has no credits left for the operation."""

    status_code = 402


class UpstreamError(JaydusError):
    """A vendor API answered with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, provider: Optional[str] = None):
        super().__init__(message, status_code=status_code or 500, error_code="UPSTREAM_ERROR")
        self.provider = provider
