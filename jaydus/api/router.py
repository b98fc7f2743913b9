"""
Main API router.
"""

from fastapi import APIRouter
from jaydus.api import stream, proxy, chat, users, api_keys, billing, models

api_router = APIRouter()

api_router.include_router(
    stream.router,
    tags=["ai-stream"]
)

api_router.include_router(
    proxy.router,
    tags=["ai-proxy"]
)

api_router.include_router(
    chat.router,
    tags=["chat"]
)

api_router.include_router(
    users.router,
    prefix="/user",
    tags=["users"]
)

api_router.include_router(
    api_keys.router,
    prefix="/api-keys",
    tags=["api-keys"]
)

api_router.include_router(
    billing.router,
    prefix="/stripe",
    tags=["billing"]
)

api_router.include_router(
    models.router,
    prefix="/models",
    tags=["models"]
)
