"""
LLM provider routing, streaming and proxies.
"""

from .ai_service import AIServiceManager, ai_service_manager
from .providers import Provider, resolve_provider

__all__ = [
    "AIServiceManager",
    "ai_service_manager",
    "Provider",
    "resolve_provider",
]
